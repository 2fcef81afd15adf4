from setuptools import setup

setup(
    name="slimparse",
    version="0.1.0",
    description="Parser for the Slim templating language producing Temple-style expression trees",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=['slimparse'],
    python_requires=">=3.7",
    install_requires=[
        "watchdog",
        "pyyaml"
    ],
    extras_require={
        "test": ["pytest"],
    },
)

from setuptools import setup

setup(
    name="fractive",
    version="0.1.0",
    description="Hypertext authoring tool that compiles Markdown stories with macros into a playable html file",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=['fractive'],
    python_requires=">=3.8",
    install_requires=[
        "markdown-it-py>=3.0",
        "watchdog",
        "pyyaml",
        "jsonschema>=4.0"
    ],
    extras_require={
        "test": ["pytest"],
    },
)

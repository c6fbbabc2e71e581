from setuptools import setup, find_packages

setup(
    name="ge2ismrmrd",
    version="0.1.0",
    description="Convert GE ScanArchive and P-file raw MRI data to ISMRMRD datasets",
    packages=find_packages(),
    package_data={
        "ge2ismrmrd.stylesheets": ["*.xsl", "*.xml"],
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "ge2ismrmrd=ge2ismrmrd.cli.main:main",
        ]
    },
    install_requires=[
        "pydicom",
        "pydantic",
        "numpy",
        "lxml",
        "ismrmrd",
        "tabulate",
        "pytest",
    ],
    python_requires=">=3.10",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    keywords="MRI raw data GE ISMRMRD conversion medical imaging",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)

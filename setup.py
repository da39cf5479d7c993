#!/usr/bin/env python
"""Setup configuration for fhirmodel."""

from setuptools import find_packages, setup

setup(
    name="fhirmodel",
    version="1.0.0",
    description="Descriptor-driven FHIR R4 data model with JSON, XML and hash serialization",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    package_data={
        "fhirmodel": ["definitions/*.json", "definitions/*/*.json"],
    },
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.0.0",
        "structlog>=23.2.0",
        "defusedxml>=0.7.1",
        "simplejson>=3.19.0",
        "fhirclient>=4.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "fhirmodel-generate-definitions=fhirmodel.generator:main",
        ],
    },
)

from setuptools import setup


setup(
    name="sov-doctor",
    version="0.1.0",
    description="Map messy broker statement-of-values workbooks onto a standard SOV schema",
    packages=["sov_doctor"],
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "requests",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "ods": ["odfpy"],
        "all": ["xlrd", "odfpy"],
    },
    entry_points={
        "console_scripts": [
            "sov-doctor=sov_doctor.cli:main",
        ]
    },
)

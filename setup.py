from setuptools import setup


setup(
    name="loan-report",
    version="0.1.0",
    description="Loan portfolio tables from spreadsheets, with totals, exported as PDF or PNG",
    packages=["loan_report"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "reportlab",
        "matplotlib",
        "streamlit",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "all": ["xlrd"],
    },
    entry_points={
        "console_scripts": [
            "loan-report=loan_report.cli:main",
        ]
    },
)

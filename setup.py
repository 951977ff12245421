"""
Setup configuration for Dataverse Data Dictionary
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / 'README.md'
long_description = readme_file.read_text(encoding='utf-8') if readme_file.exists() else ''

setup(
    name='dataverse-data-dictionary',
    version='0.1.0',
    description='Build a data dictionary of custom fields and their script references for a Dataverse solution',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(include=['dataverse_dictionary', 'dataverse_dictionary.*']),
    python_requires='>=3.8',
    install_requires=[
        'requests>=2.31.0',
        'pyyaml>=6.0',
        'python-dotenv>=1.0.0',
        'jinja2>=3.1.2',
        'pandas>=2.0.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
            'pytest-cov>=4.0',
            'black>=23.0',
            'flake8>=6.0',
            'mypy>=1.0',
        ]
    },
    entry_points={
        'console_scripts': [
            'dataverse-dictionary=dataverse_dictionary.analyzers.main:main',
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Libraries',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
)

#
# Copyright 2010 Factual Inc.
# Distributed under the MIT License. See LICENSE for more info.
#

""" Installation script for the factual package.
"""

from setuptools import setup, find_packages
import re
import io

__version__ = re.search(
    r'__version__\s*=\s*[\'"]([^\'"]*)[\'"]',
    io.open('factual/core/__init__.py', encoding='utf_8_sig').read()
    ).group(1)


url = "http://github.com/factual/python-factual"
author = 'Factual Inc.'
author_email = 'support@factual.com'


setup(
    name='factual',
    description='Python API and CLI (Command-Line Interface) for the Factual table API.',
    long_description='For further information, visit the project [homepage](%s).' % url,
    long_description_content_type='text/markdown',
    url=url,
    author=author,
    author_email=author_email,
    maintainer=author,
    maintainer_email=author_email,
    version=__version__,
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        'factual.core': ['schemas/*.schema.json']
    },
    python_requires='>=3.8, <4',
    entry_points={
        'console_scripts': [
            'factual-table-cli = factual.core.table_cli:main'
        ]
    },
    install_requires=[
        'requests',
        'urllib3>=1.26,<3',
        'portalocker>=1.2.1',
        'jsonschema>=3.1'
    ],
    license='MIT',
    classifiers=[
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX',
        'Operating System :: MacOS :: MacOS X',
        'Operating System :: Microsoft :: Windows',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12'
    ]
)

from setuptools import setup, find_packages
import sys, os

version = '0.1'

def readme():
    dirname = os.path.dirname(os.path.abspath(__file__))
    filename = os.path.join(dirname, "README.txt")
    with open(filename) as fp:
        return fp.read()

setup(name='autover',
    version=version,
    description="API version negotiation over the HTTP Accept header, with a (F)CGI document server",
    long_description=readme(),
    classifiers=[], # Get strings from http://pypi.python.org/pypi?%3Aaction=list_classifiers
    keywords='http accept content-negotiation api versioning wsgi',
    license='BSD',
    packages=find_packages(exclude=['ez_setup', 'examples', 'tests']),
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.7",
    install_requires=[
        "flup",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points="""
        [console_scripts]
        autover_cgi=autover.command:autover_cgi
        autover_fcgi=autover.command:autover_fcgi
    """,
    )

from setuptools import setup

setup(
    name='pyvalr',
    version='0.1.0',
    description='Genomic interval algebra on pandas DataFrames',
    install_requires=['pandas', 'numpy', 'scipy'],
    extras_require={'test': ['pytest']},
    packages=['pyvalr'],
    python_requires='>=3.10',
    zip_safe=False
)

from setuptools import setup

# Read version from icport/VERSION
with open('icport/VERSION') as f:
    VERSION = f.read().strip()

setup(
    name='icport',
    version=VERSION,
    description='Interactive curses dashboard for listening ports and the processes that own them',
    long_description=open('README.md', encoding='utf-8').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Topic :: System :: Networking :: Monitoring',
    ],
    python_requires='>=3.8',
    packages=['icport'],
    package_data={'icport': ['VERSION']},
    install_requires=[
        'psutil',
        'pyyaml',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'icport=icport:cli_entry',
        ],
    },
)

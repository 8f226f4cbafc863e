from setuptools import setup, find_packages

setup(
    name='kubeprep',
    version='0.1.0',
    packages=find_packages(),
    include_package_data=True,
    package_data={
        'kubeprep.modules.scripts': ['templates/*.sh.j2'],
    },
    install_requires=[
        'typer',
        'paramiko',
        'pyyaml',
        'jinja2',
        'pydantic>=2',
        'python-dotenv',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'kubeprep=kubeprep.cli:app'
        ]
    },
    author='Your Name',
    description='Prepare a fleet of hosts for a kubeadm-based Kubernetes cluster',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)

"""
Setup script for Pension Drawdown Simulation Package
Installs the drawdown_model package so worker processes can import it
"""
from setuptools import setup
import os


requirements_path = os.path.join(os.path.dirname(__file__), 'requirements.txt')
requirements = []
if os.path.exists(requirements_path):
    with open(requirements_path, 'r') as f:
        requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]


package_dir = 'drawdown_model'
if os.path.exists(os.path.join(os.path.dirname(os.path.abspath(__file__)), package_dir)):
    setup(
        name='drawdown-model',
        version='1.0.0',
        description='Monte Carlo pension drawdown simulation with standard and regime-switching returns',
        packages=['drawdown_model', 'drawdown_model.tests'],
        install_requires=requirements,
        extras_require={'test': ['pytest']},
        entry_points={'console_scripts': ['drawdown-model=drawdown_model.main:main']},
        python_requires='>=3.8',
        zip_safe=False,
    )
else:
    raise FileNotFoundError(f"Package directory '{package_dir}' not found")

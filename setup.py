from setuptools import setup

setup(
    name='forest-trees',
    version='1.0',
    py_modules=[
        'bootstrap',
        'entropy_histogram',
        'errors',
        'forest_trainer',
        'online_learner',
        'split_search',
        'threshold_generator',
        'tree_builder',
    ],
    packages=['data_structures'],
    install_requires=['numpy'],
    extras_require={'test': ['pytest']},
    python_requires='>=3.10',
    description='Decision tree learners for random forests: axis-aligned, projective, hyperplane and online',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)

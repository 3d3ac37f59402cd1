from setuptools import setup

setup(
    name='socketmanager',
    version='0.1.0',
    description='Threaded TCP client and listener with deadline-bounded reads and event notifications.',
    url='',
    author='',
    author_email='',
    license='LGPL',
    package_dir={'': 'src'},
    packages=['socketmanager', 'socketmanager.conduit', 'socketmanager.config', 'socketmanager.connector',
              'socketmanager.support'],
    package_data={'socketmanager.config': ['*.cfg']},
    python_requires='>=3.7',
    install_requires=['configobj'],
    extras_require={
        'test': ['PyHamcrest>=2.0', 'timeout-decorator', 'pytest']
    },
    zip_safe=False
)

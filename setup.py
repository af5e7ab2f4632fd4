from setuptools import setup, find_packages
import sys
import os

here = os.path.abspath(os.path.dirname(__file__))
README = open(os.path.join(here, 'README.md')).read()
NEWS = open(os.path.join(here, 'NEWS.txt')).read()

version = '0.0.1'

# nmigen 0.3 is what the simulator tests are written against
# (nmigen.back.pysim).  nmigen 0.3 was published on PyPI as amaranth 0.3,
# which still ships the nmigen.* compatibility package.

install_requires = [
    'amaranth==0.3',
    'libresoc-nmutil',      # RecordObject, write_gtkw
]

test_requires = [
    'pytest',
]

setup(
    name='wbcache',
    version=version,
    description="A nmigen-based 4-way write-back write-allocate data cache",
    long_description=README + '\n\n' + NEWS,
    long_description_content_type='text/markdown',
    classifiers=[
        "Topic :: Software Development",
        "License :: OSI Approved :: GNU Lesser General Public License v3 or later (LGPLv3+)",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    keywords='nmigen cache dcache plru write-back',
    license='LGPLv3+',
    packages=find_packages('src'),
    package_dir={'': 'src'},
    include_package_data=True,
    zip_safe=False,
    install_requires=install_requires,
    tests_require=test_requires,
    extras_require={'test': test_requires},
)

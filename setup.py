from setuptools import setup


def get_version():
    return "1.0.0"

setup(
    name="mcasciilib",
    version=get_version(),
    description="Memcached text protocol client library",
    long_description="Memcached text protocol client library: command encoding, "
                     "reply parsing and a keep-alive socket transport",
    author="Couchbase Inc",
    author_email="build@couchbase.com",
    install_requires=[],
    extras_require={"test": ["pytest"]},
    package_dir={"": "lib"},
    py_modules=["logger",
                "memcacheConstants",
                "mc_errors",
                "mc_config",
                "mc_key_codec",
                "mc_transport",
                "mc_ascii_protocol",
                "mc_ascii_client"],
    scripts=["scripts/mc_ascii_tool.py"],
    python_requires=">=3.6",
    url="http://www.couchbase.com/",
    keywords=["memcached", "cache", "protocol"],
    classifiers=[
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Development Status :: 5 - Production/Stable",
        "Environment :: Other Environment",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
)

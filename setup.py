from setuptools import setup, find_packages
import os

PACKAGE = "tracerunner"
ROOT = os.path.dirname(__file__)
try:
    VERSION = open(os.path.join(ROOT, "version.txt")).read().strip()
except OSError:
    VERSION = "0.0+local.dummy"
assert VERSION, "Failed to determine version"

requires = [
    "psutil>=5.8.0",
    "PyYAML>=6.0",
    "stevedore>=3.5.0",
    "prometheus_client>=0.17.0",
]

# pip install .[test]
extras_require = {
    "test": [
        "pytest>=6.2.4",
        "pytest-asyncio>=0.21.0",
    ]
}

setup(
    name="tracerunner",
    author="TraceRunner Development Team",
    author_email="tracerunner@example.com",
    version=VERSION,
    license="Apache License 2.0",
    description="In-node execution agent for bpftrace and bcc traces of Kubernetes workloads",
    long_description="""
TraceRunner is the agent that runs inside a trace job on a Kubernetes node.
It resolves the host process of a pod container, launches bpftrace or a bcc
tool against it, and supervises the tracer with a two step interrupt protocol.

Key Features:
- Container process resolution through mount namespace roots
- bpftrace programs rewritten for the container pid
- bcc tools with pass-through arguments
- First Ctrl-C flushes tracer maps, second Ctrl-C stops the tracer
- Flame graph rendering through stackcollapse and flamegraph
- Optional Prometheus run metrics
    """,
    long_description_content_type="text/plain",
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Environment :: Console",
        "Intended Audience :: System Administrators",
        "Intended Audience :: Developers",
        "Topic :: System :: Monitoring",
    ],
    keywords="kubernetes tracing ebpf bpf bpftrace bcc flamegraph",
    provides=["tracerunner"],
    packages=find_packages(exclude=["tests"]),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "tracerunner = tracerunner.main:main",
        ],
        "tracerunner.tracers": [
            "bpftrace = tracerunner.tracers:BpftraceTracer",
            "bcc = tracerunner.tracers:BccTracer",
        ],
    },
    install_requires=requires,
    extras_require=extras_require,
    python_requires=">=3.9",
    zip_safe=False,
)

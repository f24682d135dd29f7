# setup.py
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="visionmd",
    version="1.0.0",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["visionmd", "visionmd.*"]),
    description="Scanned PDFs and images to Markdown with Google Cloud Vision batch OCR.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.9",

    install_requires=[
        "google-cloud-storage",
        "google-cloud-vision",
        "google-api-core",
        "google-auth",
        "protobuf",
        "PyMuPDF",
        "tqdm",
        "Pillow",
        "numpy",
        "python-slugify",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'visionmd=visionmd.cli:entry',
        ],
    },
)

from setuptools import setup, find_packages

setup(
    name="rank-it-pro",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main", "celery_worker"],
    install_requires=[
        "flask",
        "flask-cors",
        "requests",
        "python-dotenv",
        "supabase",
        "stripe",
        "celery",
        "redis",
        "PyJWT",
        "werkzeug",
        "twilio",
        "anthropic",
    ],
    extras_require={
        "test": ["pytest"],
    },
)

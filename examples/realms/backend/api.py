"""Backend functions the frontend calls through a generated stub."""

VERSION = "1.0"


def greet(name):
    return f"Hello, {name}!"


async def add(a, b):
    return a + b

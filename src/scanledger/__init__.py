"""scanledger package."""

__all__ = ["app", "main"]


def __getattr__(name: str):
    # The CLI pulls in typer and rich; load it only when asked for.
    if name in __all__:
        from scanledger.cli import app, main

        return {"app": app, "main": main}[name]
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)

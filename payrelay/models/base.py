from payrelay.db import Base

__all__ = ["Base"]

import uuid


def generate_id() -> str:
    """Opaque, collision-resistant identifier for new presets, items and entries."""
    return str(uuid.uuid4())

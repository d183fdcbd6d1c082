DEFAULT_CONFIG = {
    "headless": True,
    "viewport": {"width": 1280, "height": 720},
    "language": "en-US",
    "user_agent": None,
    # Abort image/font/media requests; snapshots only need the DOM.
    "block_resources": True,
    "blocked_resource_types": ["image", "font", "media"],
    "navigation_timeout": 12000,
    "load_state_timeout": 10000,
}

from typing import Any, Dict

from webqa_casegen.data.test_structures import PageSnapshot
from webqa_casegen.exceptions import InvalidSnapshotError


def snapshot_from_app_description(description: Dict[str, Any]) -> PageSnapshot:
    """Build a mobile snapshot from an app description.

    The description names the app (``appId``), its ``platform`` (android/ios)
    and lists ``screens``, ``buttons`` and ``inputs`` the way a mobile
    inspector reports them. The app id doubles as the snapshot url and the
    app name (or id) as its title.
    """
    if not isinstance(description, dict):
        raise InvalidSnapshotError("App description must be a mapping")

    app_id = description.get("appId") or description.get("app_id")
    if not app_id:
        raise InvalidSnapshotError("App description is missing 'appId'")
    platform = str(description.get("platform") or description.get("appPlatform") or "android").lower()
    if platform == "web":
        raise InvalidSnapshotError("App description platform must be a mobile platform")

    raw = {
        "url": app_id,
        "title": description.get("name") or app_id,
        "platform": platform,
        "screens": description.get("screens") or [],
        "buttons": description.get("buttons") or [],
        "inputs": description.get("inputs") or [],
        "links": description.get("links") or [],
        "forms": description.get("forms") or [],
    }
    if description.get("extractedAt"):
        raw["extractedAt"] = description["extractedAt"]
    return PageSnapshot.from_raw(raw)

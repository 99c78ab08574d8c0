from typing import List, Optional

from hub_agent.domain.models.agent_state import ContextSnapshot

GLOBAL = "global"
CALENDAR = "calendar"
POST_EDITOR = "postEditor"
BRAND_VOICE = "brandVoice"


def get_context_keys(snapshot: Optional[ContextSnapshot] = None) -> List[str]:
    """Ordered context keys for the UI the user is looking at; always starts with global"""

    keys = [GLOBAL]

    if snapshot is None:
        return keys

    if snapshot.page == CALENDAR or snapshot.component == CALENDAR:
        keys.append(CALENDAR)

    if snapshot.component == POST_EDITOR or snapshot.open_post_id:
        keys.append(POST_EDITOR)

    if snapshot.page == BRAND_VOICE or snapshot.component == BRAND_VOICE:
        keys.append(BRAND_VOICE)

    return keys

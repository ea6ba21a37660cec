from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from branchtale.db.session import get_db
from branchtale.modules.auth.deps import require_player_id
from branchtale.modules.mechanics.errors import ForbiddenError, NotFoundError
from branchtale.modules.mechanics.validation import validate_conditions_and_effects
from branchtale.modules.player.repository import SqlStoryRepository
from branchtale.modules.story.schemas import ValidateMechanicsRequest, ValidateMechanicsResponse

router = APIRouter(prefix="", tags=["stories"])


@router.post("/stories/{story_id}/mechanics/validate", response_model=ValidateMechanicsResponse)
def validate_mechanics(
    story_id: str,
    payload: ValidateMechanicsRequest,
    user_id: str = Depends(require_player_id),
    db: Session = Depends(get_db),
):
    schema = SqlStoryRepository(db).get_schema(story_id)
    if schema is None:
        raise NotFoundError("Story not found", code="STORY_NOT_FOUND", details={"story_id": story_id})
    if schema.author_id != user_id:
        raise ForbiddenError("Only the story's author can validate its mechanics")
    return validate_conditions_and_effects(payload.condition, payload.effects, schema).to_dict()

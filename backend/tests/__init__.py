# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from app.models.match import Match  # noqa: F401
from app.models.team import Team  # noqa: F401
from app.models.tournament import Tournament  # noqa: F401

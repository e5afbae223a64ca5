# models/__init__.py
# Model registry: importing this package makes every table known to Migrate

from .user import User, Role
from .team import Team, Member, team_judges
from .criterion import Criterion
from .round import Round, RoundCriterion
from .score import Score

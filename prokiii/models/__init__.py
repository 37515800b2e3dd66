from .event_model import EventModel, MAX_PRIZES
from .team_model import TeamModel, RosterAction, RosterOutcome
from .user_model import UserModel, AuthProvider

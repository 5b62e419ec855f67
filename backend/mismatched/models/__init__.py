# Models package
from .base import Base
from .user import User
from .game import Game
from .session import GameSession

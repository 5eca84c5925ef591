from . import customerrors
from .globalcommands import GlobalCMDS

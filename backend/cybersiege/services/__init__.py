# cybersiege/services/__init__.py
from .command_interpreter import CommandInterpreter, CommandResult
from .mission_service import MissionService
from .room_manager import RoomManager

__all__ = ['CommandInterpreter', 'CommandResult', 'MissionService', 'RoomManager']

"""
HOMESERVER Deploy Helper
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
deploy-helper: run a program's update commands, detect whether its
artifact changed, and keep its systemd update timer and run service
installed and running.
"""

__version__ = "0.1.0"

from .config import Config, load_config
from .orchestrator import UpdateOrchestrator, UpdateReport, UpdateState
from .units import EnvironmentFacts, UnitSet, generate_units

__all__ = [
    'Config',
    'load_config',
    'UpdateOrchestrator',
    'UpdateReport',
    'UpdateState',
    'EnvironmentFacts',
    'UnitSet',
    'generate_units',
]

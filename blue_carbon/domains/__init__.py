"""
Domain models for the Blue Carbon MRV core.

This package contains the projects, certificates, revenue and
configuration models shared by services, repositories and adapters.
"""

from blue_carbon.domains.projects import *
from blue_carbon.domains.certificates import *
from blue_carbon.domains.revenue import *
from blue_carbon.domains.config import *

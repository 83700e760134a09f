# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from choiros.models.organization import Organization  # noqa: F401 ; doit précéder membership/event
from choiros.models.user import User  # noqa: F401
from choiros.models.membership import Membership  # noqa: F401
from choiros.models.event import Event  # noqa: F401
from choiros.models.attendance import Attendance  # noqa: F401

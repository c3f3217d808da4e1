# Parking reconciliation — Database Models
# Import all models here for SQLAlchemy discovery

from app.models.queue_entry import QueueEntry          # noqa
from app.models.parking_session import ParkingSession  # noqa
from app.models.tariff import TariffSetting            # noqa
from app.models.alert import Alert                     # noqa

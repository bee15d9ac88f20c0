# ReRide backend: document tables
# Import all models here for SQLAlchemy discovery

from reride.models.vehicle import VehicleDocument       # noqa
from reride.models.user import UserDocument             # noqa
from reride.models.taxonomy import TaxonomyDocument     # noqa

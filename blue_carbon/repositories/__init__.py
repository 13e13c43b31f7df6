from blue_carbon.repositories.project import MongoProjectRepository
from blue_carbon.repositories.certificate import MongoCertificateRepository

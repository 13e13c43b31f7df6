from blue_carbon.factories.mrv_factory import BlueCarbonFactory, MRVServices

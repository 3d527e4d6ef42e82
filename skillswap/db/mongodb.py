from pymongo import ASCENDING, DESCENDING, MongoClient

class MongoDB:
    def __init__(self):
        self.client = None
        self.db = None

    def connect(self, mongo_uri: str, db_name: str):
        self.client = MongoClient(mongo_uri)
        self.db = self.client[db_name]

    def disconnect(self):
        if self.client:
            self.client.close()

    def get_collection(self, collection_name: str):
        if self.db is None:
            raise Exception("Database connection is not initialized")
        return self.db[collection_name]

# Global MongoDB instance
mongodb = None

def init_mongoDB(settings):
    global mongodb
    mongodb = MongoDB()
    mongodb.connect(settings.MONGO_URI, settings.MONGO_DB)

def close_mongoDB():
    if mongodb is not None:
        mongodb.disconnect()

def get_db():
    if mongodb is None:
        raise Exception("MongoDB is not initialized")
    return mongodb

def get_notifications_collection():
    return get_db().get_collection("notifications")

def ensure_notification_indexes(collection):
    collection.create_index([("recipient", ASCENDING), ("isRead", ASCENDING), ("createdAt", DESCENDING)])
    collection.create_index([("isActive", ASCENDING), ("expiresAt", ASCENDING)])

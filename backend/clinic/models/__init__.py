from .user import User
from .messaging import Conversation, Message, DeliveryStatus, DELIVERED, READ

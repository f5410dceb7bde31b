from schoolstock.models.user import User
from schoolstock.models.category import Category
from schoolstock.models.inventory import InventoryItem, StockMovement
from schoolstock.models.notification import LowStockAlert

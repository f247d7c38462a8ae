from stuff_library.models.item import Item
from stuff_library.extensions import db


class ItemRepo:
    @staticmethod
    def get(item_id: int):
        return db.session.get(Item, item_id)

    @staticmethod
    def list_by_owner(owner_id: int):
        return Item.query.filter_by(owner_id=owner_id).order_by(Item.id.desc()).all()

    @staticmethod
    def create(item: Item):
        db.session.add(item)
        db.session.commit()
        return item

    @staticmethod
    def set_current_borrow_request(item: Item, borrow_request_id):
        # caller commits
        item.current_borrow_request_id = borrow_request_id

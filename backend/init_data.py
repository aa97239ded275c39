"""
初始化数据脚本
创建：管理员、示例客户、示例房间（可重复执行，已存在的记录跳过）

默认账号：
  admin@hotel.com     admin123      管理员
  john@example.com    password123   客户
"""
from decimal import Decimal

from staybook.database import SessionLocal, init_db
from staybook.models.ontology import User, UserRole, Room, RoomType, BedType
from staybook.security.auth import get_password_hash


SEED_USERS = [
    {'first_name': 'Admin', 'last_name': 'User', 'email': 'admin@hotel.com',
     'password': 'admin123', 'phone': '9999999999', 'role': UserRole.ADMIN},
    {'first_name': 'John', 'last_name': 'Doe', 'email': 'john@example.com',
     'password': 'password123', 'phone': '9876543210', 'role': UserRole.USER},
]

SEED_ROOMS = [
    {'room_number': '101', 'room_type': RoomType.SINGLE, 'bed_type': BedType.SINGLE, 'floor': 1,
     'description': 'Comfortable single room with modern amenities',
     'price_per_night': Decimal('2500.00'), 'capacity_adults': 1, 'capacity_children': 0,
     'amenities': ['wifi', 'tv', 'air-conditioning', 'room-service']},
    {'room_number': '102', 'room_type': RoomType.DOUBLE, 'bed_type': BedType.QUEEN, 'floor': 1,
     'description': 'Spacious double room perfect for couples',
     'price_per_night': Decimal('3500.00'), 'capacity_adults': 2, 'capacity_children': 1,
     'amenities': ['wifi', 'tv', 'air-conditioning', 'mini-bar', 'balcony']},
    {'room_number': '201', 'room_type': RoomType.SUITE, 'bed_type': BedType.KING, 'floor': 2,
     'description': 'Luxurious suite with separate living area',
     'price_per_night': Decimal('7500.00'), 'capacity_adults': 3, 'capacity_children': 2,
     'amenities': ['wifi', 'tv', 'air-conditioning', 'mini-bar', 'room-service', 'jacuzzi', 'city-view']},
    {'room_number': '301', 'room_type': RoomType.DELUXE, 'bed_type': BedType.KING, 'floor': 3,
     'description': 'Premium deluxe room with ocean view',
     'price_per_night': Decimal('5500.00'), 'capacity_adults': 2, 'capacity_children': 2,
     'amenities': ['wifi', 'tv', 'air-conditioning', 'mini-bar', 'balcony', 'ocean-view', 'coffee-maker']},
    {'room_number': 'PS01', 'room_type': RoomType.PRESIDENTIAL, 'bed_type': BedType.KING, 'floor': 5,
     'description': 'Presidential suite with luxury amenities and panoramic views',
     'price_per_night': Decimal('15000.00'), 'capacity_adults': 4, 'capacity_children': 2,
     'amenities': ['wifi', 'tv', 'air-conditioning', 'mini-bar', 'room-service', 'jacuzzi',
                   'fireplace', 'kitchenette', 'city-view', 'safe']},
]


def init_users(db):
    """创建默认账号"""
    created = 0
    for user_data in SEED_USERS:
        data = dict(user_data)
        if db.query(User).filter(User.email == data['email']).first():
            continue
        db.add(User(
            first_name=data['first_name'],
            last_name=data['last_name'],
            email=data['email'],
            phone=data['phone'],
            password_hash=get_password_hash(data.pop('password')),
            role=data['role'],
            is_active=True,
            loyalty_points=0,
        ))
        created += 1
    db.flush()
    return created


def init_rooms(db):
    """创建示例房间"""
    created = 0
    for room_data in SEED_ROOMS:
        if db.query(Room).filter(Room.room_number == room_data['room_number']).first():
            continue
        db.add(Room(is_active=True, **room_data))
        created += 1
    db.flush()
    return created


def seed(db):
    """写入全部种子数据，返回 (新建用户数, 新建房间数)"""
    users = init_users(db)
    rooms = init_rooms(db)
    db.commit()
    return users, rooms


def main():
    """主函数"""
    print("=" * 50)
    print("StayBook 初始化数据")
    print("=" * 50)

    init_db()
    print("数据库表创建完成")

    db = SessionLocal()
    try:
        users, rooms = seed(db)
        print(f"新建用户 {users} 个，新建房间 {rooms} 间")
        print("管理员: admin@hotel.com / admin123")
        print("客户: john@example.com / password123")
    except Exception as e:
        db.rollback()
        print(f"初始化失败: {e}")
        raise
    finally:
        db.close()


if __name__ == '__main__':
    main()

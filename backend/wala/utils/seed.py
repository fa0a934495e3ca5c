"""Demo users and products for development databases."""

from __future__ import annotations

import logging

from sqlmodel import Session

from .. import models, repositories
from ..cache import cache

_LOGGER = logging.getLogger("wala.seed")

# (name, surname, avatar, email, password, role)
DEMO_USERS = [
    ("Admin", "Administrador", "https://robohash.org/admin?size=200x200&bgset=bg1",
     "admin@waladaw.com", "admin", models.Role.ADMIN),
    ("Prueba", "Probando Mucho", "https://robohash.org/prueba?size=200x200&bgset=bg2",
     "prueba@prueba.com", "prueba", models.Role.USER),
    ("Moderador", "User", "https://api.dicebear.com/7.x/avataaars/svg?seed=moderador",
     "moderador@waladaw.com", "moderador", models.Role.MODERATOR),
    ("Otro", "User", "https://api.dicebear.com/7.x/personas/svg?seed=otro",
     "otro@otro.com", "otro", models.Role.USER),
    ("María", "García López", "https://api.dicebear.com/7.x/avataaars/svg?seed=maria",
     "maria@email.com", "maria123", models.Role.USER),
    ("Carlos", "Rodríguez Pérez", "https://robohash.org/carlos?size=200x200&set=set1",
     "carlos@email.com", "carlos123", models.Role.USER),
    ("Ana", "Martín Sánchez", "https://api.dicebear.com/7.x/adventurer/svg?seed=ana",
     "ana@email.com", "ana123", models.Role.USER),
    ("David", "López Torres", "https://robohash.org/david?size=200x200&set=set4",
     "david@email.com", "david123", models.Role.USER),
]

# (name, price, image, description, category, owner email)
DEMO_PRODUCTS = [
    ("iPhone 15 Pro Max", 1199.0, "https://images.unsplash.com/photo-1695048133142-1a20484d2569?w=400",
     "El iPhone más avanzado de Apple con chip A17 Pro y cámara de 48MP. Estado impecable, apenas usado.",
     models.ProductCategory.SMARTPHONES, "prueba@prueba.com"),
    ("Samsung Galaxy S24 Ultra", 1099.0, "https://images.unsplash.com/photo-1511707171634-5f897ff02aa9?w=400",
     "Flagship de Samsung con S Pen integrado y cámara de 200MP. Como nuevo, con todos los accesorios.",
     models.ProductCategory.SMARTPHONES, "prueba@prueba.com"),
    ("Google Pixel 8 Pro", 899.0, "https://images.unsplash.com/photo-1598327105666-5b89351aff97?w=400",
     "El mejor teléfono para fotografía con IA de Google Tensor G3. Excelente estado de conservación.",
     models.ProductCategory.SMARTPHONES, "otro@otro.com"),
    ("Google Pixel 7a", 449.0, "https://images.unsplash.com/photo-1598300042247-d088f8ab3a91?w=400",
     "El mejor Pixel en relación calidad-precio. Cámara excepcional y Android puro.",
     models.ProductCategory.SMARTPHONES, "moderador@waladaw.com"),
    ("MacBook Pro M3", 1999.0, "https://images.unsplash.com/photo-1517336714731-489689fd1ca8?w=400",
     "MacBook Pro 14 con chip M3 Max, 36GB RAM, 1TB SSD. Garantía Apple vigente.",
     models.ProductCategory.LAPTOPS, "admin@waladaw.com"),
    ("MacBook Air M2", 1299.0, "https://images.unsplash.com/photo-1541807084-5c52b6b3adef?w=400",
     "MacBook Air M2 de 13 pulgadas, 16GB RAM, 512GB SSD. Ultra portátil y silencioso.",
     models.ProductCategory.LAPTOPS, "prueba@prueba.com"),
    ("Dell XPS 13", 1149.0, "https://images.unsplash.com/photo-1496181133206-80ce9b88a853?w=400",
     "Ultrabook premium con Intel i7, 16GB RAM y pantalla 4K táctil.",
     models.ProductCategory.LAPTOPS, "maria@email.com"),
    ("ThinkPad X1 Carbon", 1599.0, "https://images.unsplash.com/photo-1588872657578-7efd1f1555ed?w=400",
     "Portátil empresarial ultraligero con un teclado excepcional.",
     models.ProductCategory.LAPTOPS, "ana@email.com"),
    ("AirPods Pro 2ª Gen", 249.0, "https://images.unsplash.com/photo-1590658268037-6bf12165a8df?w=400",
     "Auriculares con cancelación de ruido adaptativa. Nuevos en caja sellada.",
     models.ProductCategory.AUDIO, "moderador@waladaw.com"),
    ("Sony WH-1000XM5", 299.0, "https://images.unsplash.com/photo-1583394838336-acd977736f90?w=400",
     "Auriculares noise-cancelling líderes del mercado. Comodidad todo el día.",
     models.ProductCategory.AUDIO, "prueba@prueba.com"),
    ("JBL Flip 6", 89.0, "https://images.unsplash.com/photo-1608043152269-423dbba4e7e1?w=400",
     "Altavoz portátil resistente al agua con batería de 12 horas.",
     models.ProductCategory.AUDIO, "carlos@email.com"),
    ("Steam Deck OLED", 549.0, "https://images.unsplash.com/photo-1550745165-9bc0b252726f?w=400",
     "Consola portátil con pantalla OLED HDR de 7.4 pulgadas. Modelo de 512GB. Como nuevo.",
     models.ProductCategory.GAMING, "otro@otro.com"),
    ("PlayStation 5", 499.0, "https://images.unsplash.com/photo-1606813907291-d86efa9b94db?w=400",
     "PS5 en perfecto estado con un mando adicional y 3 juegos digitales.",
     models.ProductCategory.GAMING, "prueba@prueba.com"),
    ("Nintendo Switch OLED", 329.0, "https://images.unsplash.com/photo-1578662996442-48f60103fc96?w=400",
     "Switch OLED con Pro Controller y 5 juegos físicos.",
     models.ProductCategory.GAMING, "carlos@email.com"),
    ("Apple Watch Series 9", 399.0, "https://images.unsplash.com/photo-1434493789847-2f02dc6ca35d?w=400",
     "Smartwatch GPS + Cellular con correa deportiva.",
     models.ProductCategory.ACCESSORIES, "prueba@prueba.com"),
    ("Anker PowerCore", 45.0, "https://images.unsplash.com/photo-1609091839311-d5365f9ff1c5?w=400",
     "Batería portátil de 20.000mAh con carga rápida PD.",
     models.ProductCategory.ACCESSORIES, "carlos@email.com"),
    ("Mechanical Keyboard", 149.0, "https://images.unsplash.com/photo-1541140532154-b024d705b90a?w=400",
     "Teclado mecánico RGB con switches Cherry MX Blue.",
     models.ProductCategory.ACCESSORIES, "david@email.com"),
]


def seed_demo_data(session: Session) -> bool:
    """Insert the demo catalogue when the database has no users.

    Returns True when data was inserted, False when it was already there.
    """
    from ..services import PWD_CTX

    user_repo = repositories.UserRepository(session)
    if user_repo.count() > 0:
        _LOGGER.info("database already has users, skipping demo data")
        return False
    owners = {}
    for name, surname, avatar, email, password, role in DEMO_USERS:
        owners[email] = user_repo.create(models.User(
            name=name, surname=surname, avatar=avatar, email=email,
            password_hash=PWD_CTX.hash(password), role=role,
        ))
    product_repo = repositories.ProductRepository(session)
    for name, price, image, description, category, owner_email in DEMO_PRODUCTS:
        product_repo.save(models.Product(
            name=name, price=price, image=image, description=description,
            category=category, owner_id=owners[owner_email].id,
        ))
    cache.clear()
    _LOGGER.info("seeded %d users and %d products", len(DEMO_USERS), len(DEMO_PRODUCTS))
    return True

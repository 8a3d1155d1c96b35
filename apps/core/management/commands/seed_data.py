"""
Demo data seeding command.
建立假資料供展示與測試使用。

Usage:
    python manage.py seed_data          # 建立所有假資料
    python manage.py seed_data --reset  # 清除並重建所有假資料
"""
from decimal import Decimal
from django.core.management.base import BaseCommand
from django.db import transaction


class Command(BaseCommand):
    help = '建立 Demo 假資料'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reset',
            action='store_true',
            help='清除現有資料後重新建立',
        )

    def handle(self, *args, **options):
        if options['reset']:
            self.stdout.write('清除現有資料...')
            self.clear_data()

        with transaction.atomic():
            self.stdout.write('開始建立假資料...')

            # 依序建立資料（有相依性）
            roles = self.create_roles()
            users = self.create_users(roles)
            locations = self.create_locations()
            materials = self.create_materials()
            self.create_stock(materials, locations)

        # 退貨單透過流程服務建立，各自使用獨立交易
        self.create_returns(users, materials, locations)

        self.stdout.write(self.style.SUCCESS('假資料建立完成！'))

    def clear_data(self):
        """清除所有資料（保留 admin 帳號）"""
        from apps.returns.models import ReturnLine, ReturnRequest, ReturnCodeSequence
        from apps.inventory.models import InventoryMovement, StockBalance
        from apps.materials.models import Material
        from apps.locations.models import Location
        from apps.accounts.models import User, Role

        # 依相依性順序刪除
        ReturnLine.objects.all().delete()
        ReturnRequest.objects.all().delete()
        ReturnCodeSequence.objects.all().delete()

        InventoryMovement.objects.all().delete()
        StockBalance.objects.all().delete()

        Material.objects.all().delete()
        Location.objects.all().delete()

        User.objects.exclude(username='admin').delete()
        Role.objects.all().delete()

        self.stdout.write('資料清除完成')

    def create_roles(self):
        """建立角色"""
        from apps.accounts.models import Role

        roles = {}
        for code, name in Role.CODE_CHOICES:
            roles[code], _ = Role.objects.get_or_create(code=code, defaults={'name': name})

        self.stdout.write(f'  建立 {len(roles)} 個角色')
        return roles

    def create_users(self, roles):
        """建立使用者"""
        from apps.accounts.models import User

        users_data = [
            ('manager01', '王主管', 'MANAGER'),
            ('keeper01', '李倉管', 'WAREHOUSE'),
            ('requester01', '陳申請', 'REQUESTER'),
        ]

        users = {}
        for username, display_name, role_code in users_data:
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@example.com',
                    password='demo1234',
                    display_name=display_name,
                    role=roles[role_code]
                )
            users[role_code] = user

        User.objects.get_system_user()
        self.stdout.write(f'  建立 {len(users)} 位使用者')
        return users

    def create_locations(self):
        """建立儲位"""
        from apps.locations.models import Location

        locations_data = [
            ('WH-MAIN', '總倉', 'WAREHOUSE'),
            ('WH-QC', '待檢區', 'QUARANTINE'),
            ('SITE-A', 'A 工地', 'SITE'),
        ]

        locations = {}
        for code, name, location_type in locations_data:
            locations[code], _ = Location.objects.get_or_create(
                code=code,
                defaults={'name': name, 'location_type': location_type}
            )

        self.stdout.write(f'  建立 {len(locations)} 個儲位')
        return locations

    def create_materials(self):
        """建立物料"""
        from apps.materials.models import Material

        materials_data = [
            ('MAT-001', '鋼筋 #4', 'KG', Decimal('28.50'), True),
            ('MAT-002', '水泥 50kg', 'BAG', Decimal('180.00'), True),
            ('MAT-003', '木模板', 'PCS', Decimal('420.00'), True),
            ('MAT-004', '安全帽', 'PCS', None, True),
            ('MAT-005', '瀝青', 'TON', Decimal('9800.00'), False),
        ]

        materials = {}
        for code, name, unit, unit_price, allow_returns in materials_data:
            materials[code], _ = Material.objects.get_or_create(
                code=code,
                defaults={
                    'name': name,
                    'unit': unit,
                    'unit_price': unit_price,
                    'allow_returns': allow_returns,
                }
            )

        self.stdout.write(f'  建立 {len(materials)} 項物料')
        return materials

    def create_stock(self, materials, locations):
        """建立期初庫存"""
        from apps.inventory.models import StockBalance
        from apps.inventory.services import InventoryService

        count = 0
        for material in materials.values():
            for location_code, quantity in (('WH-MAIN', 200), ('SITE-A', 40)):
                location = locations[location_code]
                if StockBalance.objects.filter(material=material, location=location).exists():
                    continue
                InventoryService.adjust_stock(
                    location_id=location.id,
                    material_id=material.id,
                    quantity=quantity,
                    movement_type='ADJUST_IN',
                    reference_type='Adjustment',
                    note='期初庫存'
                )
                count += 1

        self.stdout.write(f'  建立 {count} 筆期初庫存')

    def create_returns(self, users, materials, locations):
        """建立退貨單"""
        from apps.returns.services import ReturnWorkflowService

        service = ReturnWorkflowService()
        site = locations['SITE-A']
        main = locations['WH-MAIN']
        qc = locations['WH-QC']

        internal = service.submit_return({
            'category': 'INTERNAL',
            'reason': '工地剩料退回總倉',
            'lines': [
                {'material_id': materials['MAT-001'].id, 'quantity': 15,
                 'source_location_id': site.id, 'destination_location_id': main.id},
                {'material_id': materials['MAT-003'].id, 'quantity': 6,
                 'source_location_id': site.id, 'destination_location_id': main.id},
            ],
        }, users['REQUESTER'])

        customer = service.submit_return({
            'category': 'CUSTOMER',
            'reason': '客戶退回瑕疵品',
            'source_document_type': 'SALE',
            'source_document_id': 'SO-DEMO-001',
            'lines': [
                {'material_id': materials['MAT-002'].id, 'quantity': 3,
                 'destination_location_id': qc.id, 'detail_reason': '包裝破損'},
            ],
        }, users['REQUESTER'])
        if customer.success:
            service.approve_return(customer.return_id, users['MANAGER'], notes='確認瑕疵')
            service.process_return(customer.return_id, users['WAREHOUSE'])

        supplier = service.submit_return({
            'category': 'SUPPLIER',
            'reason': '規格不符退回供應商',
            'source_document_type': 'PURCHASE',
            'source_document_id': 'PO-DEMO-001',
            'lines': [
                {'material_id': materials['MAT-004'].id, 'quantity': 20,
                 'source_location_id': main.id, 'unit_price': Decimal('150.00')},
            ],
        }, users['REQUESTER'])

        created = [r for r in (internal, customer, supplier) if r.success]
        self.stdout.write(f'  建立 {len(created)} 張退貨單')

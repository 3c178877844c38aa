"""
Report Service - dashboard figures and reports derived from the ledgers and the journal
"""
from datetime import date
from decimal import Decimal
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import and_, case, false, func, or_
from sqlalchemy.orm import Session, joinedload

from estatedesk.core.exceptions import NotFoundError
from estatedesk.core.pagination import Page, paginate
from estatedesk.models import (
    Customer, Property, PropertyStatus, PropertyTransactionType, SellProperty,
    Transaction, TransactionType, ZERO
)
from estatedesk.services.ledger_service import money
from estatedesk.services.transaction_service import TransactionService


def _margin(profit: Decimal, cost: Decimal) -> Decimal:
    if cost <= 0:
        return ZERO
    return money(profit / cost * 100)


class ReportService:
    def __init__(self, db: Session):
        self.db = db

    # ==================== CASH FLOW ====================

    def _cash_flow(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Tuple[Decimal, Decimal]:
        query = self.db.query(
            func.coalesce(func.sum(case((Transaction.type == TransactionType.CREDIT.value, Transaction.amount), else_=0)), 0),
            func.coalesce(func.sum(case((Transaction.type == TransactionType.DEBIT.value, Transaction.amount), else_=0)), 0),
        ).filter(Transaction.is_deleted == False)
        if start_date:
            query = query.filter(Transaction.payment_date >= start_date)
        if end_date:
            query = query.filter(Transaction.payment_date <= end_date)
        cash_in, cash_out = query.one()
        return money(cash_in), money(cash_out)

    def _purchases(self):
        return self.db.query(Property).filter(
            Property.is_deleted == False,
            Property.transaction_type == PropertyTransactionType.PURCHASE.value
        )

    def _sales(self):
        return (
            self.db.query(SellProperty)
            .select_from(SellProperty)
            .join(Property, SellProperty.property_id == Property.id)
            .filter(SellProperty.is_deleted == False, Property.is_deleted == False)
        )

    def dashboard(self) -> Dict[str, Any]:
        cash_in, cash_out = self._cash_flow()
        net = cash_in - cash_out

        total_units = self._purchases().count()
        sold_units = self._sales().count()

        revenue = money(self._sales().with_entities(func.coalesce(func.sum(SellProperty.total_sale_amount), 0)).scalar())
        cost_of_sold = money(
            self.db.query(func.coalesce(func.sum(Property.total_amount), 0))
            .select_from(SellProperty)
            .join(Property, SellProperty.property_id == Property.id)
            .filter(SellProperty.is_deleted == False, Property.is_deleted == False)
            .scalar()
        )
        gross_profit = revenue - cost_of_sold

        receivables = money(self._sales().with_entities(func.coalesce(func.sum(SellProperty.pending_amount), 0)).scalar())
        payables = money(self._purchases().with_entities(func.coalesce(func.sum(Property.due_amount), 0)).scalar())

        recent_sales = (
            self._sales().options(joinedload(SellProperty.property), joinedload(SellProperty.buyer))
            .order_by(SellProperty.sale_date.desc(), SellProperty.id.desc()).limit(5).all()
        )
        recent_purchases = (
            self._purchases().options(joinedload(Property.seller))
            .order_by(Property.date.desc(), Property.id.desc()).limit(5).all()
        )

        return {
            "cash_book": {
                "total_received": cash_in,
                "total_paid": cash_out,
                "cash_in_hand": net,
                "status": "POSITIVE" if net >= 0 else "NEGATIVE",
            },
            "inventory": {
                "total_units": total_units,
                "sold_units": sold_units,
                "unsold_units": total_units - sold_units,
            },
            "profitability": {
                "total_sales_value": revenue,
                "purchase_cost_sold": cost_of_sold,
                "gross_profit": gross_profit,
                "profit_margin": _margin(gross_profit, cost_of_sold),
            },
            "outstanding": {
                "receivables": receivables,
                "payables": payables,
                "net_market_position": receivables - payables,
            },
            "recent_activity": {
                "sales": [
                    {
                        "id": s.id,
                        "title": s.property.title if s.property else None,
                        "party": s.buyer.name if s.buyer else None,
                        "amount": s.total_sale_amount,
                        "date": s.sale_date,
                    }
                    for s in recent_sales
                ],
                "purchases": [
                    {
                        "id": p.id,
                        "title": p.title,
                        "party": p.seller.name if p.seller else None,
                        "amount": p.total_amount,
                        "status": p.status,
                        "date": p.date,
                    }
                    for p in recent_purchases
                ],
            },
        }

    def stats(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict[str, Any]:
        inventory = self._purchases()
        sales = self._sales()
        if start_date and end_date:
            inventory = inventory.filter(Property.date.between(start_date, end_date))
            sales = sales.filter(SellProperty.sale_date.between(start_date, end_date))

        total_stock = inventory.count()
        sold_stock = inventory.filter(Property.status != PropertyStatus.AVAILABLE.value).count()
        purchase_cost = money(inventory.with_entities(func.coalesce(func.sum(Property.total_amount), 0)).scalar())
        sales_value = money(sales.with_entities(func.coalesce(func.sum(SellProperty.total_sale_amount), 0)).scalar())

        # Approximation: average unit cost times units sold
        sold_cost = money(purchase_cost / total_stock * sold_stock) if total_stock and sold_stock else ZERO
        cash_in, cash_out = self._cash_flow(start_date, end_date)

        return {
            "period": f"{start_date} to {end_date}" if start_date and end_date else "All Time",
            "inventory": {
                "total_plots": total_stock,
                "sold_plots": sold_stock,
                "available": total_stock - sold_stock,
            },
            "value": {
                "purchase_cost": purchase_cost,
                "sales_value": sales_value,
                "paper_profit": sales_value - sold_cost,
            },
            "cash_flow": {
                "received": cash_in,
                "paid": cash_out,
                "net_balance": cash_in - cash_out,
            },
        }

    # ==================== DAYBOOK ====================

    def _daybook_query(self, start_date: Optional[date], end_date: Optional[date]):
        query = self.db.query(Transaction).options(
            joinedload(Transaction.property).joinedload(Property.seller),
            joinedload(Transaction.property).joinedload(Property.buyer),
            joinedload(Transaction.sell_property).joinedload(SellProperty.buyer),
        ).filter(Transaction.is_deleted == False)
        if start_date:
            query = query.filter(Transaction.payment_date >= start_date)
        if end_date:
            query = query.filter(Transaction.payment_date <= end_date)
        return query.order_by(Transaction.payment_date.desc(), Transaction.id.desc())

    @staticmethod
    def daybook_row(transaction: Transaction) -> Dict[str, Any]:
        return {
            "id": transaction.id,
            "date": transaction.payment_date,
            "property": transaction.property.title if transaction.property else None,
            "party": TransactionService.party_name(transaction),
            "type": transaction.type,
            "amount": transaction.amount,
            "mode": transaction.payment_mode,
            "reference": transaction.reference_no,
            "remarks": transaction.remarks,
        }

    def daybook(self, start_date: Optional[date] = None, end_date: Optional[date] = None,
                page: int = 1, per_page: int = 20) -> Page:
        result = paginate(self._daybook_query(start_date, end_date), page, per_page)
        result.items = [self.daybook_row(t) for t in result.items]
        return result

    def daybook_workbook(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> BytesIO:
        """Daybook as an .xlsx file"""
        from openpyxl import Workbook
        from openpyxl.styles import Font, PatternFill, Alignment
        from openpyxl.utils import get_column_letter

        rows = [self.daybook_row(t) for t in self._daybook_query(start_date, end_date).all()]

        wb = Workbook()
        ws = wb.active
        ws.title = "Daybook"

        header_font = Font(bold=True, color="FFFFFF", size=11)
        header_fill = PatternFill(start_color="1e40af", end_color="1e40af", fill_type="solid")
        total_font = Font(bold=True, size=10)

        ws['A1'] = "Daybook"
        ws['A1'].font = Font(bold=True, size=14)
        ws.merge_cells('A1:H1')
        ws['A2'] = f"{start_date or 'Beginning'} to {end_date or 'Today'}"
        ws.merge_cells('A2:H2')

        headers = ["Date", "Property", "Party", "Type", "Amount", "Mode", "Reference", "Remarks"]
        for col, title in enumerate(headers, start=1):
            cell = ws.cell(row=4, column=col, value=title)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center")

        row_num = 5
        total_in = ZERO
        total_out = ZERO
        for row in rows:
            ws.cell(row=row_num, column=1, value=row["date"].strftime("%d-%b-%Y"))
            ws.cell(row=row_num, column=2, value=row["property"])
            ws.cell(row=row_num, column=3, value=row["party"])
            ws.cell(row=row_num, column=4, value=row["type"])
            amount_cell = ws.cell(row=row_num, column=5, value=float(row["amount"]))
            amount_cell.number_format = '#,##0.00'
            ws.cell(row=row_num, column=6, value=row["mode"])
            ws.cell(row=row_num, column=7, value=row["reference"])
            ws.cell(row=row_num, column=8, value=row["remarks"])
            if row["type"] == TransactionType.CREDIT.value:
                total_in += money(row["amount"])
            else:
                total_out += money(row["amount"])
            row_num += 1

        row_num += 1
        for label, value in (("Total Received", total_in), ("Total Paid", total_out),
                             ("Net", total_in - total_out)):
            ws.cell(row=row_num, column=4, value=label).font = total_font
            cell = ws.cell(row=row_num, column=5, value=float(value))
            cell.font = total_font
            cell.number_format = '#,##0.00'
            row_num += 1

        for col, width in enumerate([14, 30, 24, 10, 16, 10, 24, 36], start=1):
            ws.column_dimensions[get_column_letter(col)].width = width

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output

    # ==================== RECEIVABLES / P&L ====================

    def dues(self, search: Optional[str] = None, page: int = 1, per_page: int = 20) -> Tuple[Page, Decimal]:
        query = self._sales().join(Customer, SellProperty.customer_id == Customer.id).filter(
            SellProperty.pending_amount > 0
        )
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))

        total = money(query.with_entities(func.coalesce(func.sum(SellProperty.pending_amount), 0)).scalar())
        result = paginate(query.order_by(SellProperty.pending_amount.desc(), SellProperty.id), page, per_page)
        result.items = [
            {
                "id": s.id,
                "invoice_no": s.invoice_no,
                "property": s.property.title,
                "buyer": s.buyer.name,
                "phone": s.buyer.phone,
                "sale_date": s.sale_date,
                "total_sale_amount": s.total_sale_amount,
                "received_amount": s.received_amount,
                "pending_amount": s.pending_amount,
            }
            for s in result.items
        ]
        return result, total

    def profit_loss(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Tuple[List[Dict], Decimal]:
        query = self._sales()
        if start_date:
            query = query.filter(SellProperty.sale_date >= start_date)
        if end_date:
            query = query.filter(SellProperty.sale_date <= end_date)

        report = []
        for deal in query.order_by(SellProperty.sale_date.desc(), SellProperty.id.desc()).all():
            cost = money(deal.property.total_amount)
            price = money(deal.total_sale_amount)
            profit = price - cost
            report.append({
                "deal_id": deal.invoice_no,
                "sale_id": deal.id,
                "property": deal.property.title,
                "sale_date": deal.sale_date,
                "cost_price": cost,
                "sale_price": price,
                "profit": profit,
                "margin": _margin(profit, cost),
                "status": "PROFIT" if profit >= 0 else "LOSS",
            })
        return report, sum((r["profit"] for r in report), ZERO)

    def monthly_trend(self, months: int = 12, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """CREDIT (income) and DEBIT (expense) per calendar month, oldest first"""
        today = today or date.today()
        first_month = today.replace(day=1) - relativedelta(months=months - 1)

        buckets: Dict[str, Dict[str, Any]] = {}
        for i in range(months):
            key = (first_month + relativedelta(months=i)).strftime("%Y-%m")
            buckets[key] = {"month": key, "income": ZERO, "expense": ZERO}

        rows = self.db.query(Transaction.payment_date, Transaction.type, Transaction.amount).filter(
            Transaction.is_deleted == False,
            Transaction.payment_date >= first_month,
            Transaction.payment_date <= today
        ).all()
        for payment_date, entry_type, amount in rows:
            bucket = buckets.get(payment_date.strftime("%Y-%m"))
            if bucket is None:
                continue
            field = "income" if entry_type == TransactionType.CREDIT.value else "expense"
            bucket[field] += money(amount)

        return list(buckets.values())

    # ==================== PROPERTY REPORTS ====================

    def properties_report(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        page: int = 1,
        per_page: int = 15
    ) -> Page:
        query = self.db.query(Property).outerjoin(Customer, Property.seller_id == Customer.id).filter(
            Property.is_deleted == False
        )
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(
                Property.title.ilike(like),
                Property.invoice_no.ilike(like),
                Customer.name.ilike(like),
            ))
        if status:
            query = query.filter(Property.status == status)
        if category:
            query = query.filter(Property.category == category)

        result = paginate(query.order_by(Property.date.desc(), Property.id.desc()), page, per_page)
        result.items = [self._property_row(p) for p in result.items]
        return result

    def _property_row(self, prop: Property) -> Dict[str, Any]:
        deals = [d for d in prop.sell_deals if not d.is_deleted]
        cost = money(prop.total_amount)
        total_area = Decimal(prop.area_dismil or 0)
        sold_area = sum((Decimal(d.area_dismil or 0) for d in deals), ZERO)
        sale_price = sum((money(d.total_sale_amount) for d in deals), ZERO)

        if sold_area > 0 and total_area > 0:
            proportional_cost = money(cost * sold_area / total_area)
        else:
            proportional_cost = cost if deals else ZERO
        profit = sale_price - proportional_cost if deals else None

        return {
            "id": prop.id,
            "title": prop.title,
            "category": prop.category,
            "status": prop.status,
            "invoice": prop.invoice_no,
            "purchased_from": prop.seller.name if prop.seller else None,
            "purchase_date": prop.date,
            "cost_price": cost,
            "vendor_due": prop.due_amount,
            "total_area": total_area,
            "sold_area": sold_area,
            "remaining_area": total_area - sold_area,
            "sold_to": ", ".join(d.buyer.name for d in deals if d.buyer) or None,
            "total_buyers": len(deals),
            "total_sale_price": sale_price if deals else None,
            "total_received": sum((money(d.received_amount) for d in deals), ZERO),
            "total_pending": sum((money(d.pending_amount) for d in deals), ZERO),
            "profit_loss": profit,
            "margin": _margin(profit, proportional_cost) if profit is not None else None,
        }

    def property_report(self, property_id: int) -> Dict[str, Any]:
        """Acquisition, sale deals, documents and cash movements of one property"""
        prop = self.db.query(Property).filter(Property.id == property_id, Property.is_deleted == False).first()
        if not prop:
            raise NotFoundError("Property not found")

        transactions = [t for t in prop.transactions if not t.is_deleted]
        transactions.sort(key=lambda t: (t.payment_date, t.id), reverse=True)
        return {
            "summary": self._property_row(prop),
            "property": prop,
            "deals": [d for d in prop.sell_deals if not d.is_deleted],
            "documents": [d for d in prop.documents if not d.is_deleted],
            "transactions": transactions,
        }

    # ==================== CUSTOMER REPORTS ====================

    def customers_report(
        self,
        search: Optional[str] = None,
        type: Optional[str] = None,
        page: int = 1,
        per_page: int = 15
    ) -> Page:
        query = self.db.query(Customer).filter(Customer.is_deleted == False)
        if search:
            like = f"%{search.strip()}%"
            query = query.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
        if type:
            query = query.filter(Customer.type == type)

        result = paginate(query.order_by(Customer.created_at.desc(), Customer.id.desc()), page, per_page)
        result.items = [self._customer_row(c) for c in result.items]
        return result

    def _customer_row(self, customer: Customer, start_date: Optional[date] = None,
                      end_date: Optional[date] = None) -> Dict[str, Any]:
        purchases = [s for s in customer.purchases if not s.is_deleted]
        supplies = [
            p for p in customer.supplied_properties
            if not p.is_deleted and p.transaction_type == PropertyTransactionType.PURCHASE.value
        ]
        if start_date and end_date:
            purchases = [s for s in purchases if start_date <= s.sale_date <= end_date]
            supplies = [p for p in supplies if start_date <= p.date <= end_date]

        return {
            "id": customer.id,
            "name": customer.name,
            "phone": customer.phone,
            "type": customer.type,
            "total_bought": sum((money(s.total_sale_amount) for s in purchases), ZERO),
            "total_paid_by_customer": sum((money(s.received_amount) for s in purchases), ZERO),
            "recoverable": sum((money(s.pending_amount) for s in purchases), ZERO),
            "total_supplied": sum((money(p.total_amount) for p in supplies), ZERO),
            "paid_to_customer": sum((money(p.paid_amount) for p in supplies), ZERO),
            "payable": sum((money(p.due_amount) for p in supplies), ZERO),
            "purchased_items": [
                {"invoice": s.invoice_no, "property": s.property.title, "date": s.sale_date}
                for s in purchases
            ],
            "supplied_items": [
                {"invoice": p.invoice_no, "property": p.title, "date": p.date}
                for p in supplies
            ],
        }

    def customer_report(self, customer_id: int, start_date: Optional[date] = None,
                        end_date: Optional[date] = None) -> Dict[str, Any]:
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Customer not found")

        sale_ids = [s.id for s in customer.purchases if not s.is_deleted]
        supply_ids = [p.id for p in customer.supplied_properties if not p.is_deleted]
        # Sale receipts plus vendor payments on the properties this party supplied
        conditions = [false()]
        if sale_ids:
            conditions.append(Transaction.sell_property_id.in_(sale_ids))
        if supply_ids:
            conditions.append(and_(Transaction.property_id.in_(supply_ids), Transaction.sell_property_id.is_(None)))
        ledger = self.db.query(Transaction).filter(Transaction.is_deleted == False, or_(*conditions))
        if start_date and end_date:
            ledger = ledger.filter(Transaction.payment_date.between(start_date, end_date))

        return {
            "customer": customer,
            "summary": self._customer_row(customer, start_date, end_date),
            "transactions": ledger.order_by(Transaction.payment_date.desc(), Transaction.id.desc()).all(),
        }

"""Demo main window: a miniature ERP shell carrying the catalog's tour targets.

Pages are switched by the ``InMemoryRouter`` (``/dashboard``, ``/purchase``,
``/sales``, ``/contracts``, ``/settings``). The purchase page opens an in-window
purchase-order "modal" whose scrollable body is marked ``modal-body`` and
whose fields broadcast their state to the tour service, which is enough to
walk through both the basics tour and the create-purchase-order guide.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from PyQt6.QtWidgets import (
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMenu,
    QPushButton,
    QScrollArea,
    QStackedWidget,
    QTableWidget,
    QTextEdit,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from ..services.routing import InMemoryRouter, split_path
from ..services.tour_service import TourService

__all__ = ["DemoWindow", "PAGES"]

_logger = logging.getLogger(__name__)

PAGES = ("/dashboard", "/purchase", "/sales", "/contracts", "/settings")

PO_MODAL = "PurchaseOrderForm"


def _tagged(widget: QWidget, tour: str, tour_class: Optional[str] = None) -> QWidget:
    widget.setProperty("tour", tour)
    if tour_class:
        widget.setProperty("tourClass", tour_class)
    return widget


def _card(text: str, tour: str) -> QLabel:
    label = QLabel(text)
    label.setFrameShape(QFrame.Shape.StyledPanel)
    label.setMinimumHeight(60)
    return _tagged(label, tour)  # type: ignore[return-value]


class DemoWindow(QMainWindow):
    def __init__(self, router: InMemoryRouter, company: str = "Demo Petroleum LLC") -> None:
        super().__init__()
        self.setWindowTitle("PBM")
        self.resize(1100, 720)
        self.router = router
        self.service: Optional[TourService] = None
        self._pages: Dict[str, QWidget] = {}

        central = QWidget()
        root = QVBoxLayout(central)
        root.addWidget(self._build_top_bar(company))
        self.stack = QStackedWidget()
        for path, builder in (
            ("/dashboard", self._build_dashboard),
            ("/purchase", self._build_purchase),
            ("/sales", self._build_sales),
            ("/contracts", self._build_contracts),
            ("/settings", self._build_settings),
        ):
            page = builder()
            self._pages[path] = page
            self.stack.addWidget(page)
        root.addWidget(self.stack, 1)
        self.setCentralWidget(central)

        self.po_modal = self._build_po_modal(central)
        self.po_modal.hide()

        router.subscribe(self._on_route)
        self._on_route(router.current_path())

    # wiring -------------------------------------------------------------
    def bind(self, service: TourService) -> None:
        self.service = service
        self._rebuild_help_menu()

    def _broadcast(self, **fields) -> None:
        if self.service is not None:
            self.service.broadcast(**fields)

    def _on_route(self, path: str) -> None:
        page = self._pages.get(split_path(path)[0])
        if page is not None:
            self.stack.setCurrentWidget(page)

    # chrome -------------------------------------------------------------
    def _build_top_bar(self, company: str) -> QWidget:
        bar = _tagged(QWidget(), "welcome")
        layout = QHBoxLayout(bar)
        layout.addWidget(_tagged(QLabel(company), "company-info"))

        nav = _tagged(QWidget(), "main-navigation")
        nav_layout = QHBoxLayout(nav)
        for path in PAGES:
            button = QPushButton(path.strip("/").capitalize())
            button.clicked.connect(lambda _checked=False, p=path: self.router.navigate(p))
            nav_layout.addWidget(button)
        layout.addWidget(nav, 1)

        self.language_box = QComboBox()
        self.language_box.addItems(["en", "ar"])
        self.language_box.currentTextChanged.connect(self._on_language)
        layout.addWidget(_tagged(self.language_box, "language-switcher"))

        self.help_button = QToolButton()
        self.help_button.setText("Help")
        self.help_button.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        self.help_menu = QMenu(self.help_button)
        self.help_button.setMenu(self.help_menu)
        layout.addWidget(_tagged(self.help_button, "help-menu"))
        return bar

    def _on_language(self, language: str) -> None:
        if self.service is not None:
            self.service.set_language(language)
            self._rebuild_help_menu()

    def _rebuild_help_menu(self) -> None:
        self.help_menu.clear()
        if self.service is None:
            return
        for summary in self.service.get_tours_list():
            action = self.help_menu.addAction(f"{summary.name} ({summary.progress}%)")
            action.setEnabled(summary.available)
            action.triggered.connect(lambda _checked=False, t=summary.id: self.service.start_tour(t))
        for category, guides in self.service.get_workflow_guides_by_category().items():
            if not guides:
                continue
            sub = self.help_menu.addMenu(category.capitalize())
            for guide in guides:
                action = sub.addAction(guide.name)
                action.setEnabled(guide.available)
                action.triggered.connect(lambda _checked=False, t=guide.id: self.service.start_tour(t))

    # pages ----------------------------------------------------------------
    def _build_dashboard(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(_tagged(QLabel("Workflow Dashboard"), "page-header"))
        layout.addWidget(_card("Collections | Purchase orders | Invoices | Pending", "primary-stats"))
        row = QHBoxLayout()
        row.addWidget(_card("Pending tasks", "pending-tasks"))
        row.addWidget(_card("Recent activity", "activity-feed"))
        layout.addLayout(row)
        layout.addStretch(1)
        return page

    def _build_purchase(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        tabs = QHBoxLayout()
        for label, tour, query in (
            ("Purchase Orders", "purchase-orders-tab", "orders"),
            ("Collections", "collections-tab", "collections"),
            ("Expenses", "expenses-tab", "expenses"),
        ):
            button = _tagged(QPushButton(label), tour)
            button.clicked.connect(lambda _checked=False, q=query: self.router.navigate(f"/purchase?tab={q}"))
            tabs.addWidget(button)
        tabs.addStretch(1)
        new_po = _tagged(QPushButton("New Purchase Order"), "new-po-button")
        new_po.clicked.connect(self.open_po_modal)
        tabs.addWidget(new_po)
        layout.addLayout(tabs)
        layout.addWidget(_tagged(QTableWidget(5, 4), "po-table"))
        layout.addWidget(_tagged(QTableWidget(3, 3), "collection-items-table"))
        actions = QHBoxLayout()
        actions.addWidget(_tagged(QPushButton("Finalize WCN"), "finalize-wcn-button"))
        status = QComboBox()
        status.addItems(["", "Pending", "Approved", "Rejected"])
        actions.addWidget(_tagged(status, "expense-status-filter"))
        actions.addWidget(_card("Approve / Reject", "expense-actions"))
        layout.addLayout(actions)
        return page

    def _build_sales(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        row = QHBoxLayout()
        row.addWidget(_tagged(QPushButton("Sales Orders"), "sales-orders-tab"))
        row.addStretch(1)
        row.addWidget(_tagged(QPushButton("New Sales Order"), "new-sales-order-button"))
        layout.addLayout(row)
        layout.addWidget(_tagged(QTableWidget(5, 4), "sales-orders-table"))
        return page

    def _build_contracts(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        row = QHBoxLayout()
        row.addWidget(_tagged(QLabel("Contracts"), "contracts-header"))
        row.addStretch(1)
        row.addWidget(_tagged(QPushButton("New Contract"), "new-contract-button"))
        layout.addLayout(row)
        layout.addWidget(_tagged(QTableWidget(4, 4), "contracts-table"))
        return page

    def _build_settings(self) -> QWidget:
        page = QWidget()
        layout = QVBoxLayout(page)
        layout.addWidget(_tagged(QLabel("Settings"), "settings-header"))
        layout.addWidget(_tagged(QPushButton("Toggle theme"), "theme-toggle"))
        layout.addStretch(1)
        return page

    # purchase order modal -------------------------------------------------
    def _build_po_modal(self, parent: QWidget) -> QFrame:
        modal = QFrame(parent)
        modal.setProperty("tourClass", "modal")
        modal.setFrameShape(QFrame.Shape.StyledPanel)
        modal.setAutoFillBackground(True)
        outer = QVBoxLayout(modal)
        outer.addWidget(QLabel("New Purchase Order"))

        scroll = QScrollArea()
        scroll.setProperty("tourClass", "modal-body")
        scroll.setWidgetResizable(True)
        body = QWidget()
        form = QVBoxLayout(body)

        self.supplier_box = QComboBox()
        self.supplier_box.addItems(["", "Gulf Oil Supply", "Desert Lubricants"])
        self.branch_box = QComboBox()
        self.branch_box.addItems(["", "Main Yard", "North Depot"])
        self.items_table = QTableWidget(0, 3)
        add_item = QPushButton("Add material")
        add_item.clicked.connect(self._add_item)
        self.terms_box = QComboBox()
        self.terms_box.addItems(["", "Net 30", "Net 60"])
        self.notes_edit = QTextEdit()
        submit = QPushButton("Create Purchase Order")
        submit.clicked.connect(self._submit_po)

        form.addWidget(_tagged(self.supplier_box, "po-supplier-select"))
        form.addWidget(_tagged(self.branch_box, "po-branch-select"))
        items = _tagged(QWidget(), "po-items-section")
        items_layout = QVBoxLayout(items)
        items_layout.addWidget(add_item)
        items_layout.addWidget(_tagged(self.items_table, "po-items-table"))
        form.addWidget(items)
        form.addWidget(_tagged(self.terms_box, "po-terms-select"))
        form.addWidget(_tagged(self.notes_edit, "po-notes"))
        form.addWidget(_tagged(submit, "po-submit-button"))
        scroll.setWidget(body)
        outer.addWidget(scroll, 1)

        for box in (self.supplier_box, self.branch_box):
            box.currentIndexChanged.connect(lambda _i: self._broadcast_form())
        return modal

    def _form_state(self) -> dict:
        count = self.items_table.rowCount()
        return {
            "hasSupplier": bool(self.supplier_box.currentText()),
            "hasBranch": bool(self.branch_box.currentText()),
            "itemCount": count,
            "completeItemCount": count,
        }

    def _broadcast_form(self) -> None:
        self._broadcast(currentModal=PO_MODAL, formState=self._form_state())

    def _add_item(self) -> None:
        self.items_table.insertRow(self.items_table.rowCount())
        self._broadcast_form()

    def open_po_modal(self) -> None:
        central = self.centralWidget()
        self.po_modal.setGeometry(central.rect().adjusted(120, 60, -120, -60))
        self.po_modal.show()
        self.po_modal.raise_()
        self._broadcast(currentModal=PO_MODAL, formState=self._form_state())

    def _submit_po(self) -> None:
        _logger.info("Purchase order submitted (supplier=%s)", self.supplier_box.currentText())
        self.po_modal.hide()
        self.items_table.setRowCount(0)
        self._broadcast(currentModal=None, formState={})
        self.router.navigate("/purchase?tab=orders")

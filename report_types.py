from __future__ import annotations

from dataclasses import dataclass

BUSINESS_UNIT_ID = "CID001683"
ORG_ID = "ID_0344"
PROFILE_ID = "ID_CID001683"
RECEIVED_LPN_STATUS = "4000"
SHIPPED_OLPN_STATUS = "8000"
ALLOCATION_ORDER_TYPES = ("B2B_A", "B2B_MGR", "B2B_M")


@dataclass(frozen=True)
class ReportType:
    """One hardcoded report shape selected by the ``type`` request parameter.

    ``source`` is everything after FROM (table plus joins), ``filters`` are
    WHERE fragments applied on every run, ``order_by`` refers to output
    columns because it is applied outside the report's derived table.
    """

    key: str
    title: str
    columns: tuple[tuple[str, str], ...]
    select: str
    source: str
    filters: tuple[str, ...] = ()
    search_columns: tuple[str, ...] = ()
    search_mode: str = "like"
    date_column: str | None = None
    group_by: str = ""
    order_by: str = ""
    union_with: "ReportType | None" = None

    @property
    def column_keys(self) -> list[str]:
        return [key for key, _ in self.columns]

    @property
    def labels(self) -> dict[str, str]:
        return dict(self.columns)

    def to_dict(self) -> dict:
        return {
            "type": self.key,
            "title": self.title,
            "columns": [{"key": key, "label": label} for key, label in self.columns],
            "supportsDateRange": self.date_column is not None,
        }


def _same(*keys: str) -> tuple[tuple[str, str], ...]:
    return tuple((key, key) for key in keys)


STOCK_INBOUND = ReportType(
    key="stockinbound",
    title="Inbound Items",
    columns=_same(
        "ASN_ID",
        "LPN_ID",
        "ITEM_ID",
        "INVENTORY_ATTRIBUTE1",
        "INVENTORY_ATTRIBUTE2",
        "PARENT_LPN_ID",
        "PRODUCT_STATUS_ID",
        "UPDATED_TIMESTAMP",
        "QUANTITY",
    ),
    select="""
        inb.ASN_ID,
        inb.LPN_ID,
        inb.ITEM_ID,
        inb.INVENTORY_ATTRIBUTE1,
        inb.INVENTORY_ATTRIBUTE2,
        inb.PARENT_LPN_ID,
        inb.PRODUCT_STATUS_ID,
        DATE_FORMAT(inb.UPDATED_TIMESTAMP, '%Y-%m-%d %H:%i:%s') AS UPDATED_TIMESTAMP,
        CAST(inb.QUANTITY AS UNSIGNED) AS QUANTITY
    """,
    source="""
        default_receiving.rcv_receipt inb
        INNER JOIN default_item_master.ite_item inb2
            ON inb.ITEM_ID = inb2.ITEM_ID
        LEFT JOIN default_receiving.rcv_lpn inb3
            ON inb.LPN_ID = inb3.LPN_ID
    """,
    filters=(
        f"inb2.PROFILE_ID = '{PROFILE_ID}'",
        f"inb.BUSINESS_UNIT_ID = '{BUSINESS_UNIT_ID}'",
        f"inb.ORG_ID = '{ORG_ID}'",
        f"inb3.LPN_STATUS = '{RECEIVED_LPN_STATUS}'",
    ),
    search_columns=("inb.ITEM_ID", "inb.LPN_ID", "inb.INVENTORY_ATTRIBUTE1", "inb.ASN_ID"),
    date_column="inb.UPDATED_TIMESTAMP",
    order_by="UPDATED_TIMESTAMP DESC",
)


STOCK_OUTBOUND = ReportType(
    key="stockoutbound",
    title="Outbound Items",
    columns=_same(
        "UPDATED_TIMESTAMP",
        "ORIGINAL_ORDER_ID",
        "PRODUCT_STATUS_ID",
        "STATUS_DO",
        "DO_LINE",
        "STO_LINE",
        "ITEM_ID",
        "OLPN_ID",
        "PACKED_QUANTITY",
        "ORDER_TYPE",
        "STATUS_OLPN",
        "SHIP_TO",
        "UPDATED_TIMESTAMP_OLPN",
        "CREATED_TIMESTAMP_DO",
        "SO",
    ),
    select="""
        DATE_FORMAT(out2.UPDATED_TIMESTAMP, '%Y-%m-%d %H:%i:%s') AS UPDATED_TIMESTAMP,
        out2.ORIGINAL_ORDER_ID,
        out4.EXT_DHL_CUST_REF4 AS PRODUCT_STATUS_ID,
        out2.MINIMUM_STATUS AS STATUS_DO,
        out4.EXT_DHL_CUST_REF1 AS DO_LINE,
        out4.EXT_DHL_CUST_REF2 AS STO_LINE,
        out1.ITEM_ID,
        out1.OLPN_ID,
        CAST(out1.PACKED_QUANTITY AS UNSIGNED) AS PACKED_QUANTITY,
        out2.ORDER_TYPE,
        out3.STATUS AS STATUS_OLPN,
        out2.EXT_DHL_CUSTOMER_SHIP_TO AS SHIP_TO,
        DATE_FORMAT(DATE_ADD(out1.UPDATED_TIMESTAMP, INTERVAL 7 HOUR), '%Y-%m-%d %H:%i:%s') AS UPDATED_TIMESTAMP_OLPN,
        DATE_FORMAT(DATE_ADD(out2.CREATED_TIMESTAMP, INTERVAL 7 HOUR), '%Y-%m-%d %H:%i:%s') AS CREATED_TIMESTAMP_DO,
        CASE
            WHEN LOCATE('DhlCustRef1', out2.JSON_STORE) > 0
            THEN SUBSTRING(out2.JSON_STORE, LOCATE('DhlCustRef1', out2.JSON_STORE) + 15, 10)
            ELSE NULL
        END AS SO
    """,
    source="""
        default_pickpack.ppk_olpn_detail out1
        INNER JOIN default_dcorder.dco_original_order out2
            ON out1.ORIGINAL_ORDER_ID = out2.ORIGINAL_ORDER_ID
        INNER JOIN default_dcorder.dco_order_line out4
            ON out2.ORIGINAL_ORDER_ID = out4.ORIGINAL_ORDER_ID
            AND out2.BUSINESS_UNIT_ID = out4.BUSINESS_UNIT_ID
            AND out1.ORDER_LINE_ID = out4.ORDER_LINE_ID
        LEFT JOIN default_pickpack.ppk_olpn out3
            ON out1.BUSINESS_UNIT_ID = out3.BUSINESS_UNIT_ID
            AND out1.OLPN_ID = out3.OLPN_ID
    """,
    filters=(
        f"out1.BUSINESS_UNIT_ID = '{BUSINESS_UNIT_ID}'",
        f"out3.STATUS = '{SHIPPED_OLPN_STATUS}'",
    ),
    search_columns=("out1.ITEM_ID", "out1.OLPN_ID", "out2.ORIGINAL_ORDER_ID", "out2.EXT_DHL_CUSTOMER_SHIP_TO"),
    # Pick-pack timestamps are stored in UTC; the warehouse reads them at UTC+7.
    date_column="DATE_ADD(out1.UPDATED_TIMESTAMP, INTERVAL 7 HOUR)",
    order_by="UPDATED_TIMESTAMP DESC",
)


STOCK_INVENTORY = ReportType(
    key="stockinventory",
    title="Current Inventory",
    columns=_same(
        "ORG_ID",
        "LOCATION_ID",
        "INVENTORY_CONTAINER_TYPE_ID",
        "ILPN_ID",
        "ITEM_ID",
        "DESCRIPTION",
        "STYLE",
        "INVENTORY_TYPE_ID",
        "PRODUCT_STATUS_ID",
        "INVENTORY_ATTRIBUTE1",
        "IS_IN_TRANSIT",
        "CONSUMPTION_PRIORITY_DATE",
        "ON_HAND",
        "ALLOCATED",
        "AVAILABLE",
        "CONDITION_CODE",
        "TO_BE_FILLED",
        "CREATED_TIMESTAMP",
        "CURRENTDATE",
    ),
    select="""
        a.ORG_ID,
        a.LOCATION_ID,
        a.INVENTORY_CONTAINER_TYPE_ID,
        a.ILPN_ID,
        a.ITEM_ID,
        b.DESCRIPTION,
        b.STYLE,
        a.INVENTORY_TYPE_ID,
        a.PRODUCT_STATUS_ID,
        a.INVENTORY_ATTRIBUTE1,
        a.IS_IN_TRANSIT,
        DATE_FORMAT(IFNULL(a.CONSUMPTION_PRIORITY_DATE, '2999-01-01'), '%Y-%m-%d %H:%i:%s') AS CONSUMPTION_PRIORITY_DATE,
        CAST(a.ON_HAND AS UNSIGNED) AS ON_HAND,
        CAST(a.ALLOCATED AS UNSIGNED) AS ALLOCATED,
        CAST((a.ON_HAND - a.ALLOCATED) AS UNSIGNED) AS AVAILABLE,
        c.CONDITION_CODE,
        CAST(a.TO_BE_FILLED AS UNSIGNED) AS TO_BE_FILLED,
        DATE_FORMAT(a.CREATED_TIMESTAMP, '%Y-%m-%d %H:%i:%s') AS CREATED_TIMESTAMP,
        DATE_FORMAT(DATE_ADD(CURRENT_TIMESTAMP(), INTERVAL 7 HOUR), '%Y-%m-%d') AS CURRENTDATE
    """,
    source="""
        default_dcinventory.dci_inventory a
        INNER JOIN default_item_master.ite_item b
            ON a.ITEM_ID = b.ITEM_ID
        LEFT JOIN default_dcinventory.dci_container_condition c
            ON a.ILPN_ID = c.INVENTORY_CONTAINER_ID
    """,
    filters=(
        f"b.PROFILE_ID = '{PROFILE_ID}'",
        f"a.BUSINESS_UNIT_ID = '{BUSINESS_UNIT_ID}'",
        f"a.ORG_ID = '{ORG_ID}'",
        "a.IS_IN_TRANSIT = '0'",
    ),
    search_columns=("a.ITEM_ID", "b.DESCRIPTION", "a.ILPN_ID", "a.LOCATION_ID"),
    date_column="a.CREATED_TIMESTAMP",
    order_by="CREATED_TIMESTAMP DESC",
)


# Trace rows are one line per transaction plus a TOTAL line per item; both
# halves receive the same item filter and are glued with UNION ALL.
_TRACE_TOTALS = ReportType(
    key="tracetransaction_totals",
    title="Trace Transaction Totals",
    columns=(),
    select="""
        'TOTAL' AS Transaction,
        item_id AS Item_ID,
        '-' AS WMS_Reference,
        '-' AS SAP_Reference,
        CAST(SUM(inbound_qty) AS SIGNED) AS QTY_INB,
        CAST(SUM(outbound_qty) AS SIGNED) AS QTY_OUT,
        CAST(SUM(adjustment_qty) AS SIGNED) AS QTY_ADJ,
        NULL AS LastTransactionDate
    """,
    source=f"""
        (
            SELECT
                inb.ITEM_ID AS item_id,
                CAST(inb.QUANTITY AS UNSIGNED) AS inbound_qty,
                0 AS outbound_qty,
                0 AS adjustment_qty
            FROM default_receiving.rcv_receipt inb
            INNER JOIN default_item_master.ite_item inb2 ON inb.ITEM_ID = inb2.ITEM_ID
            LEFT JOIN default_receiving.rcv_lpn inb3 ON inb.LPN_ID = inb3.LPN_ID
            WHERE inb.BUSINESS_UNIT_ID = '{BUSINESS_UNIT_ID}'
                AND inb3.LPN_STATUS = '{RECEIVED_LPN_STATUS}'
                AND inb.ASN_ID IS NOT NULL

            UNION ALL

            SELECT
                out1.ITEM_ID,
                0,
                CAST(out1.PACKED_QUANTITY AS UNSIGNED),
                0
            FROM default_pickpack.ppk_olpn_detail out1
            WHERE out1.ORIGINAL_ORDER_ID IS NOT NULL

            UNION ALL

            SELECT
                inv1.ITEM_ID,
                0,
                0,
                inv1.ADJUSTED_QUANTITY
            FROM default_task.tsk_activity_tracking inv1
            WHERE inv1.REASON_CODE_ID IS NOT NULL
        ) AS total_data
    """,
    search_columns=("total_data.item_id",),
    search_mode="exact",
    group_by="item_id",
)


TRACE_TRANSACTION = ReportType(
    key="tracetransaction",
    title="Trace Transaction",
    columns=(
        ("Transaction", "Transaction"),
        ("Item_ID", "Item ID"),
        ("WMS_Reference", "WMS Reference"),
        ("SAP_Reference", "SAP Reference"),
        ("QTY_INB", "QTY INB"),
        ("QTY_OUT", "QTY OUT"),
        ("QTY_ADJ", "QTY ADJ"),
        ("LastTransactionDate", "Last Transaction Date"),
    ),
    select="""
        transaction_type AS Transaction,
        item_id AS Item_ID,
        wms_reference AS WMS_Reference,
        sap_reference AS SAP_Reference,
        CAST(SUM(inbound_qty) AS UNSIGNED) AS QTY_INB,
        CAST(SUM(outbound_qty) AS UNSIGNED) AS QTY_OUT,
        SUM(adjustment_qty) AS QTY_ADJ,
        DATE_FORMAT(DATE_ADD(transaction_date, INTERVAL 7 HOUR), '%Y-%m-%d %H:%i:%s') AS LastTransactionDate
    """,
    source=f"""
        (
            SELECT
                'Inbound' AS transaction_type,
                inb.ASN_ID AS wms_reference,
                inb.ASN_ID AS sap_reference,
                inb.ITEM_ID AS item_id,
                inb.UPDATED_TIMESTAMP AS transaction_date,
                CAST(inb.QUANTITY AS UNSIGNED) AS inbound_qty,
                0 AS outbound_qty,
                0 AS adjustment_qty
            FROM default_receiving.rcv_receipt inb
            INNER JOIN default_item_master.ite_item inb2 ON inb.ITEM_ID = inb2.ITEM_ID
            LEFT JOIN default_receiving.rcv_lpn inb3 ON inb.LPN_ID = inb3.LPN_ID
            WHERE inb.BUSINESS_UNIT_ID = '{BUSINESS_UNIT_ID}'
                AND inb3.LPN_STATUS = '{RECEIVED_LPN_STATUS}'
                AND inb.ASN_ID IS NOT NULL

            UNION ALL

            SELECT
                'Outbound',
                out1.ORIGINAL_ORDER_ID,
                CASE
                    WHEN LOCATE('DhlCustRef1', out2.JSON_STORE) > 0
                    THEN SUBSTRING(out2.JSON_STORE, LOCATE('DhlCustRef1', out2.JSON_STORE) + 15, 10)
                    ELSE NULL
                END,
                out1.ITEM_ID,
                out1.UPDATED_TIMESTAMP,
                0,
                CAST(out1.PACKED_QUANTITY AS UNSIGNED),
                0
            FROM default_pickpack.ppk_olpn_detail out1
            INNER JOIN default_dcorder.dco_original_order out2
                ON out1.ORIGINAL_ORDER_ID = out2.ORIGINAL_ORDER_ID
            WHERE out1.ORIGINAL_ORDER_ID IS NOT NULL

            UNION ALL

            SELECT
                'Adjustment',
                inv1.REASON_CODE_ID,
                inv1.REASON_CODE_ID,
                inv1.ITEM_ID,
                inv1.UPDATED_TIMESTAMP,
                0,
                0,
                CAST(inv1.ADJUSTED_QUANTITY AS SIGNED)
            FROM default_task.tsk_activity_tracking inv1
            WHERE inv1.REASON_CODE_ID IS NOT NULL
        ) AS transaction_data
    """,
    search_columns=("transaction_data.item_id",),
    search_mode="exact",
    group_by="""
        transaction_type,
        item_id,
        wms_reference,
        sap_reference,
        DATE_FORMAT(DATE_ADD(transaction_date, INTERVAL 7 HOUR), '%Y-%m-%d %H:%i:%s')
    """,
    order_by="LastTransactionDate DESC",
    union_with=_TRACE_TOTALS,
)


INBOUND_ALLOCATION = ReportType(
    key="inboundallocation",
    title="Inbound Allocation",
    columns=(
        ("Transfer_Order_Number", "Transfer Order Number"),
        ("Transfer_Order_Priority", "Transfer Order Priority"),
        ("Transfer_Order_Item", "Transfer Order Item"),
        ("Source_Storage_Type", "Source Storage Type"),
        ("Article", "Article"),
        ("SSCC_Number", "SSCC Number"),
        ("Source_Storage_Bin", "Source Storage Bin"),
        ("Carton_Number", "Carton Number"),
        ("Creation_Date", "Creation Date"),
        ("GR_Number", "GR Number"),
        ("GR_Date", "GR Date"),
        ("Dest_target_quantity", "Dest.Target Quantity"),
        ("Actual_Qty", "Actual Qty"),
        ("User", "User"),
        ("Confirmation_Date", "Confirmation Date"),
        ("Confirmation_Time", "Confirmation Time"),
        ("Delivery", "Delivery"),
        ("Storage_Type", "Storage Type"),
        ("PO_Number", "PO Number"),
        ("Store_ID", "Store ID"),
        ("Store_Name", "Store Name"),
        ("Konsep", "Konsep"),
        ("Code_Colour", "Code Colour"),
        ("Colour_Description", "Colour Description"),
        ("Code_Size", "Code Size"),
        ("Size_Description", "Size Description"),
        ("Wave_Number", "Wave Number"),
        ("Wave_Status", "Wave Status"),
        ("ASN_ID", "ASN ID"),
        ("ASN_TYPE", "ASN Type"),
        ("ASN_STATUS", "ASN Status"),
        ("LAST_LOCATION", "Last Location"),
    ),
    select="""
        out1.ORDER_ID AS Transfer_Order_Number,
        out6.ORDER_LINE_PRIORITY AS Transfer_Order_Priority,
        CAST(out4.ORIGINAL_ORDER_LINE_ID AS UNSIGNED) AS Transfer_Order_Item,
        CAST(002 AS SIGNED) AS Source_Storage_Type,
        out1.ITEM_ID AS Article,
        out1.INVENTORY_CONTAINER_ID AS SSCC_Number,
        out3.PICK_LOCATION_ID AS Source_Storage_Bin,
        '' AS Carton_Number,
        DATE(out6.CREATED_TIMESTAMP) AS Creation_Date,
        IFNULL(out8.EXT_DHL_CUST_REF3, 9999999999) AS GR_Number,
        IFNULL(DATE(out8.UPDATED_TIMESTAMP), DATE(out6.CREATED_TIMESTAMP)) AS GR_Date,
        out6.ORIGINAL_ORDER_LINE_ID AS Original_Order_Line_ID,
        CAST(SUM(out1.ORIGINAL_QUANTITY) AS SIGNED) AS Dest_target_quantity,
        CAST(0 AS SIGNED) AS Actual_Qty,
        '' AS User,
        '' AS Confirmation_Date,
        '' AS Confirmation_Time,
        out1.ORDER_ID AS Delivery,
        CAST(002 AS SIGNED) AS Storage_Type,
        out6.ITEM_ATTRIBUTE1 AS PO_Number,
        SUBSTRING(out3.CUSTOMER_ID, 7) AS Store_ID,
        out3.DESTINATION_ADDRESS_FIRSTNAME AS Store_Name,
        out4.EXT_DHL_CUST_REF5 AS Konsep,
        SUBSTRING_INDEX(out5.COLOR_SUFFIX, '-', -1) AS Code_Colour,
        SUBSTRING_INDEX(out5.COLOR, ',', 1) AS Colour_Description,
        SUBSTRING_INDEX(out5.SIZE_DESCRIPTION, '-', -1) AS Code_Size,
        SUBSTRING_INDEX(out5.SIZE_DESCRIPTION, ',', 1) AS Size_Description,
        out1.GENERATION_NUMBER AS Wave_Number,
        out7.DESCRIPTION AS Wave_Status,
        out9.ASN_ID AS ASN_ID,
        out9.EXT_DHL_EXT_ASN_TYPE AS ASN_TYPE,
        out10.DESCRIPTION AS ASN_STATUS,
        IFNULL(out11.LOCATION_ID, 'NOT PUTAWAY') AS LAST_LOCATION
    """,
    source="""
        default_dcinventory.dci_allocation AS out1
        INNER JOIN default_pickpack.ppk_olpn out3
            ON out1.OLPN_ID = out3.OLPN_ID
            AND out1.ORG_ID = out3.ORG_ID
        INNER JOIN default_dcorder.dco_order_line out4
            ON out1.ORDER_LINE_ID = out4.ORDER_LINE_ID
            AND out1.ITEM_ID = out4.ITEM_ID
            AND out1.ORG_ID = out4.ORG_ID
        INNER JOIN default_item_master.ite_item out5
            ON out1.ITEM_ID = out5.ITEM_ID
        INNER JOIN default_pickpack.ppk_olpn_detail out6
            ON out1.OLPN_ID = out6.OLPN_ID
            AND out1.ORG_ID = out6.ORG_ID
            AND out1.OLPN_DETAIL_ID = out6.OLPN_DETAIL_ID
        INNER JOIN default_dcinventory.dci_allocation_status out7
            ON out1.STATUS = out7.STATUS
        LEFT JOIN default_receiving.rcv_asn_line out8
            ON out1.ITEM_ID = out8.ITEM_ID
            AND out1.INVENTORY_ATTRIBUTE1 = out8.INVENTORY_ATTRIBUTE1
        LEFT JOIN default_receiving.rcv_asn out9
            ON out1.INVENTORY_ATTRIBUTE1 = out9.EXT_DHL_EXT_PO_NBR
        LEFT JOIN default_receiving.rcv_asn_status out10
            ON out9.ASN_STATUS = out10.ASN_STATUS_ID
        LEFT JOIN default_dcinventory.dci_inventory out11
            ON out1.INVENTORY_CONTAINER_ID = out11.ILPN_ID
            AND out1.ITEM_ID = out11.ITEM_ID
    """,
    filters=(
        f"out3.ORG_ID = '{ORG_ID}'",
        "out3.ORDER_TYPE IN ({})".format(", ".join(f"'{t}'" for t in ALLOCATION_ORDER_TYPES)),
    ),
    search_columns=("out1.ITEM_ID", "out1.INVENTORY_CONTAINER_ID", "out1.GENERATION_NUMBER"),
    search_mode="in",
    group_by="""
        out1.ORDER_ID,
        out1.ITEM_ID,
        out1.OLPN_ID,
        out3.PICK_LOCATION_ID,
        out1.GENERATION_NUMBER,
        out4.ORIGINAL_ORDER_LINE_ID,
        out4.EXT_DHL_CUST_REF5,
        out5.DESCRIPTION,
        out5.SIZE_DESCRIPTION,
        out5.COLOR_SUFFIX,
        out5.COLOR,
        out6.ORDER_LINE_PRIORITY,
        out6.ITEM_ATTRIBUTE1,
        out6.ORIGINAL_ORDER_LINE_ID,
        out3.CUSTOMER_ID,
        out3.DESTINATION_ADDRESS_FIRSTNAME,
        out6.CREATED_TIMESTAMP,
        out7.DESCRIPTION,
        out1.INVENTORY_CONTAINER_ID,
        out8.EXT_DHL_CUST_REF3,
        out8.UPDATED_TIMESTAMP,
        out9.ASN_ID,
        out9.EXT_DHL_EXT_ASN_TYPE,
        out10.DESCRIPTION,
        out11.LOCATION_ID
    """,
    order_by="Transfer_Order_Number, Original_Order_Line_ID",
)


REPORT_TYPES: dict[str, ReportType] = {
    report.key: report
    for report in (STOCK_INBOUND, STOCK_OUTBOUND, STOCK_INVENTORY, TRACE_TRANSACTION, INBOUND_ALLOCATION)
}


def get_report_type(key: str | None) -> ReportType | None:
    return REPORT_TYPES.get((key or "").strip().lower())

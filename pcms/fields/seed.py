"""
Default field catalog.

The stock contract and procurement ledgers use the Chinese column titles
below; the first title is the label, the rest are accepted aliases. Users
extend the catalog through ``pcms fields`` or by editing field_configs.
"""

import json
import sqlite3
from typing import Any, Dict, List, Tuple

from pcms.fields.catalog import DataType, FieldDefinition, FieldKind, RuleSpec

# (field_name, label, aliases, data_type, required)
FieldRow = Tuple[str, str, Tuple[str, ...], DataType, bool]

CONTRACT_FIELDS: List[FieldRow] = [
    ("contract_sequence", "合同序号", (), DataType.TEXT, False),
    ("contract_number", "合同编号", ("合同号",), DataType.TEXT, True),
    ("contract_name", "合同名称", ("项目名称",), DataType.TEXT, True),
    ("contract_handler", "合同签订经办人", ("经办人",), DataType.TEXT, False),
    ("party_a", "甲方", ("发包方",), DataType.TEXT, True),
    ("party_b", "乙方", ("承包方",), DataType.TEXT, True),
    ("party_b_contact", "乙方负责人及联系方式", ("乙方联系方式",), DataType.TEXT, False),
    ("contract_contact", "合同文本内乙方联系人及方式", ("合同联系人",), DataType.TEXT, False),
    ("contract_amount", "含税签约合同价（元）", ("合同金额", "总金额"), DataType.NUMBER, True),
    ("sign_date", "签订日期", ("签约日期",), DataType.DATE, True),
    ("contract_period", "合同工期/服务期限", ("工期", "服务期限"), DataType.TEXT, False),
    ("guarantee_return_date", "履约担保退回时间", ("担保退回日期",), DataType.DATE, False),
]

PROCUREMENT_FIELDS: List[FieldRow] = [
    ("procurement_number", "招采编号", ("采购编号",), DataType.TEXT, True),
    ("procurement_name", "采购名称", ("招采名称", "项目名称"), DataType.TEXT, True),
    ("procurer", "采购人", (), DataType.TEXT, True),
    ("plan_complete_date", "采购计划完成日期", ("计划完成日期",), DataType.DATE, False),
    ("demand_approval_date", "采购需求书审批完成日期（OA）", ("需求审批日期",), DataType.DATE, False),
    ("procurement_handler", "招采经办人", ("采购经办人",), DataType.TEXT, False),
    ("demand_department", "需求部门", (), DataType.TEXT, False),
    ("demand_contact", "需求部门经办人及联系方式", ("需求部门联系方式",), DataType.TEXT, False),
    ("budget_amount", "预算金额（元）", ("预算金额",), DataType.NUMBER, False),
    ("control_price", "采购控制价（元）", ("控制价",), DataType.NUMBER, False),
    ("winning_price", "中标价（元）", ("中标价",), DataType.NUMBER, False),
    ("procurement_platform", "采购平台", (), DataType.TEXT, False),
    ("procurement_method", "采购方式", (), DataType.TEXT, False),
    ("evaluation_method", "评标方法", (), DataType.TEXT, False),
    ("award_method", "定标方法", (), DataType.TEXT, False),
    ("bid_opening_date", "开标日期", (), DataType.DATE, False),
    ("evaluation_committee", "评标委员会成员", (), DataType.TEXT, False),
    ("award_committee", "定标委员会成员", (), DataType.TEXT, False),
    ("result_publish_date", "平台中标结果公示完成日期（阳光采购平台）", ("结果公示日期",), DataType.DATE, False),
    ("notice_issue_date", "中标通知书发放日期", ("通知书发放日期",), DataType.DATE, False),
    ("winner", "中标人", (), DataType.TEXT, False),
    ("winner_contact", "中标人联系人及方式", ("中标人联系方式",), DataType.TEXT, False),
]

DATE_RULE_CONFIG: Dict[str, Any] = {
    "formats": ["%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%d/%m/%Y", "%Y年%m月%d日", "%Y%m%d"],
    "output": "%Y-%m-%d",
    "null_values": ["", "-", "/", "无", "N/A"],
}

NUMBER_RULE_CONFIG: Dict[str, Any] = {
    "remove_chars": ["¥", "￥", "$", "元", ",", "，", " "],
    "decimal_places": 2,
    "null_values": ["", "-", "/", "无"],
}

TEXT_RULE_CONFIG: Dict[str, Any] = {
    "remove_line_breaks": True,
    "normalize_spaces": True,
    "trim": True,
}

DEFAULT_RULES: Dict[DataType, Tuple[str, Dict[str, Any]]] = {
    DataType.DATE: ("date_format", DATE_RULE_CONFIG),
    DataType.NUMBER: ("number_format", NUMBER_RULE_CONFIG),
    DataType.TEXT: ("text_clean", TEXT_RULE_CONFIG),
}

_DEFAULTS: Dict[FieldKind, List[FieldRow]] = {
    FieldKind.CONTRACT: CONTRACT_FIELDS,
    FieldKind.PROCUREMENT: PROCUREMENT_FIELDS,
}


def default_rule_for(data_type: DataType) -> RuleSpec:
    cleaning_type, config = DEFAULT_RULES[DataType(data_type)]
    return RuleSpec(cleaning_type, dict(config))


def default_field_definitions() -> List[FieldDefinition]:
    """The stock catalog as FieldDefinitions (no database needed)."""
    definitions = []
    for kind, rows in _DEFAULTS.items():
        for order, (name, label, aliases, data_type, required) in enumerate(rows, start=1):
            definitions.append(
                FieldDefinition(
                    name=name,
                    label=label,
                    kind=kind,
                    aliases=aliases,
                    data_type=data_type,
                    required=required,
                    cleaning_rules=(default_rule_for(data_type),),
                    display_order=order,
                )
            )
    return definitions


def seed_default_fields(conn: sqlite3.Connection) -> Dict[str, int]:
    """
    Insert the stock fields and their cleaning rules.

    Existing rows (same field_name + kind) are left untouched so user edits
    survive a re-seed. Returns counts of newly inserted rows.
    """
    counts = {"fields": 0, "rules": 0}

    for f in default_field_definitions():
        cur = conn.execute(
            """INSERT OR IGNORE INTO field_configs
               (field_name, label, kind, aliases, data_type, is_required, display_order)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (f.name, f.label, f.kind.value, ",".join(f.aliases),
             f.data_type.value, 1 if f.required else 0, f.display_order),
        )
        counts["fields"] += cur.rowcount

        for rule in f.cleaning_rules:
            if rule.cleaning_type == "text_clean":
                # text fields fall back to the default rule at extraction time
                continue
            cur = conn.execute(
                """INSERT OR IGNORE INTO cleaning_rules
                   (field_name, kind, cleaning_type, rule_config, priority, description)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (f.name, f.kind.value, rule.cleaning_type,
                 json.dumps(rule.config, ensure_ascii=False), rule.priority,
                 f"{f.label} {rule.cleaning_type}"),
            )
            counts["rules"] += cur.rowcount

    conn.commit()
    return counts

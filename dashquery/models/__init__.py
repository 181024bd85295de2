from dashquery.models.widget import ChartConfig, DashboardChatResult, WidgetIntent, WidgetMeta, WidgetResult

__all__ = ["ChartConfig", "DashboardChatResult", "WidgetIntent", "WidgetMeta", "WidgetResult"]

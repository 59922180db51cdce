import re
from pathlib import Path
from typing import Dict
from loguru import logger
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.enums import TA_CENTER, TA_LEFT
import openpyxl
from openpyxl.styles import PatternFill, Border, Side, Alignment, Font
from openpyxl.utils import get_column_letter

from ..models.config import format_amount
from ..models.entities import Sprint, SprintCalendar, SprintCalendarDay, SprintCapacity, SprintProgress


class ReportGenerator:
    """Serviço responsável pela geração do relatório de capacidade da sprint"""

    def __init__(
        self,
        sprint: Sprint,
        capacity: SprintCapacity,
        calendar: SprintCalendar,
        progress: SprintProgress,
        output_dir: str,
    ):
        """
        Inicializa o gerador de relatórios

        Args:
            sprint: Sprint a ser relatada
            capacity: Capacidade em pontos de complexidade
            calendar: Ocupação dia a dia em horas
            progress: Horas estimadas contra realizadas
            output_dir: Diretório de saída dos relatórios
        """
        self.sprint = sprint
        self.capacity = capacity
        self.calendar = calendar
        self.progress = progress
        self.output_dir = Path(output_dir)

        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.styles = getSampleStyleSheet()
        self._setup_styles()

        self.excel_colors: Dict[str, PatternFill] = {
            'weekend': PatternFill(start_color='FFB3B3', end_color='FFB3B3', fill_type='solid'),  # Vermelho claro
            'over': PatternFill(start_color='FF6666', end_color='FF6666', fill_type='solid'),     # Vermelho
            'full': PatternFill(start_color='B3FFB3', end_color='B3FFB3', fill_type='solid'),     # Verde claro
            'partial': PatternFill(start_color='B3D1FF', end_color='B3D1FF', fill_type='solid'),  # Azul claro
            'empty': PatternFill(start_color='FFFFB3', end_color='FFFFB3', fill_type='solid')     # Amarelo claro
        }

    @property
    def base_name(self) -> str:
        # Apenas letras, dígitos, ponto e hífen chegam ao nome do arquivo
        name = re.sub(r'[^\w.-]+', '_', self.sprint.name or self.sprint.id).strip('._')
        return f"capacidade_sprint_{name or 'sprint'}"

    def _setup_styles(self):
        """Configura estilos personalizados para o relatório"""
        self.styles.add(ParagraphStyle(
            name='CustomTitle',
            parent=self.styles['Title'],
            fontSize=16,
            spaceAfter=30,
            textColor=colors.HexColor('#FF6B00'),  # Laranja
            alignment=TA_CENTER
        ))

        self.styles.add(ParagraphStyle(
            name='CustomHeading1',
            parent=self.styles['Heading1'],
            fontSize=14,
            spaceAfter=12,
            textColor=colors.HexColor('#FF6B00'),
            alignment=TA_LEFT
        ))

        self.styles.add(ParagraphStyle(
            name='NormalWrap',
            parent=self.styles['Normal'],
            fontSize=10,
            leading=12,
            spaceAfter=6,
            alignment=TA_LEFT
        ))

    def _create_table_style(self, header_bg_color=colors.HexColor('#FF6B00')):  # Laranja
        """Cria um estilo padrão para as tabelas"""
        return TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), header_bg_color),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#FFF5EB')]),
        ])

    def _day_label(self, day: SprintCalendarDay) -> str:
        """Situação do dia para as tabelas"""
        if day.is_over_capacity:
            return "Acima da capacidade"
        if day.is_weekend:
            return "Fim de semana"
        if day.allocated >= self.calendar.daily_capacity.amount:
            return "Completo"
        if day.allocated > 0:
            return "Parcial"
        return "Sem alocação"

    def _summary_rows(self):
        """Linhas do resumo geral, compartilhadas entre Markdown e PDF"""
        unit = self.capacity.unit.symbol
        return [
            ("Sprint", self.sprint.name or self.sprint.id),
            ("Período", f"{self.sprint.start_date.strftime('%d/%m/%Y')} a {self.sprint.end_date.strftime('%d/%m/%Y')}"),
            ("Dias", f"{self.capacity.days} ({self.calendar.work_days} dias úteis)"),
            ("Capacidade total", f"{format_amount(self.capacity.total_capacity)}{unit}"),
            ("Pontos atribuídos", f"{format_amount(self.capacity.used_points)}{unit}"),
            ("Saldo", f"{format_amount(self.capacity.remaining)}{unit}"),
            ("Capacidade preenchida", f"{self.capacity.percentage:.1f}%"),
            ("Capacidade excedida", "Sim" if self.capacity.is_over_capacity else "Não"),
            ("Horas estimadas", f"{self.progress.total_capacity:.1f}h"),
            ("Horas realizadas", f"{self.progress.used:.1f}h ({self.progress.percentage:.1f}%)"),
            ("Tasks com data", f"{self.calendar.items_with_date} de {self.calendar.items_count}"),
            ("Média por dia útil", f"{self.calendar.average_per_work_day:.1f}h"),
        ]

    def _generate_markdown(self) -> str:
        """Gera o conteúdo do relatório em Markdown"""
        report = []

        report.append(f"# Relatório de Capacidade - Sprint {self.sprint.name or self.sprint.id}")
        report.append("")

        report.append("## 1. Resumo Geral da Sprint")
        report.append("")
        for label, value in self._summary_rows():
            report.append(f"- **{label}:** {value}")
        report.append("")

        report.append("## 2. Ocupação Diária")
        report.append("")
        report.append("| Data | Horas | Ocupação | Tasks | Situação |")
        report.append("|------|-------|----------|-------|----------|")
        for day in self.calendar.days:
            report.append(
                f"| {day.day.strftime('%d/%m/%Y')} | {format_amount(day.allocated)}h | "
                f"{day.utilization_percent:.0f}% | {', '.join(day.item_ids) or '-'} | {self._day_label(day)} |"
            )
        report.append("")

        over = self.calendar.over_capacity_days
        if over:
            report.append("## 3. Dias acima da capacidade")
            report.append("")
            for day in over:
                report.append(
                    f"- {day.day.strftime('%d/%m/%Y')}: {format_amount(day.allocated)}h "
                    f"(limite {self.calendar.daily_capacity.describe()})"
                )
            report.append("")

        return "\n".join(report)

    def _generate_pdf(self, pdf_path: Path) -> None:
        """Gera o relatório da sprint em PDF"""
        doc = SimpleDocTemplate(
            str(pdf_path),
            pagesize=A4,
            rightMargin=2*cm,
            leftMargin=2*cm,
            topMargin=2*cm,
            bottomMargin=2*cm
        )

        elements = []
        elements.append(Paragraph(f"Capacidade da Sprint: {self.sprint.name or self.sprint.id}", self.styles['CustomTitle']))
        elements.append(Spacer(1, 12))

        elements.append(Paragraph("1. Resumo Geral da Sprint", self.styles['CustomHeading1']))
        summary = Table([["Métrica", "Valor"]] + [list(row) for row in self._summary_rows()], colWidths=[6*cm, 10*cm])
        summary.setStyle(self._create_table_style())
        elements.append(summary)
        elements.append(Spacer(1, 12))

        elements.append(Paragraph("2. Ocupação Diária", self.styles['CustomHeading1']))
        rows = [["Data", "Horas", "Ocupação", "Situação"]]
        for day in self.calendar.days:
            rows.append([
                day.day.strftime('%d/%m/%Y'),
                f"{format_amount(day.allocated)}h",
                f"{day.utilization_percent:.0f}%",
                self._day_label(day),
            ])
        daily = Table(rows, colWidths=[4*cm, 3*cm, 3*cm, 6*cm], repeatRows=1)
        daily.setStyle(self._create_table_style())
        elements.append(daily)

        doc.build(elements)

    def _apply_allocation_color(self, cell, day: SprintCalendarDay) -> None:
        """
        Aplica a cor apropriada baseada na ocupação do dia

        Args:
            cell: Célula do Excel
            day: Dia do calendário
        """
        if day.is_over_capacity:
            cell.fill = self.excel_colors['over']
        elif day.is_weekend:
            cell.fill = self.excel_colors['weekend']
        elif day.allocated >= self.calendar.daily_capacity.amount:
            cell.fill = self.excel_colors['full']
        elif day.allocated > 0:
            cell.fill = self.excel_colors['partial']
        else:
            cell.fill = self.excel_colors['empty']

    def _generate_excel(self, excel_path: Path) -> None:
        """Gera o calendário de ocupação da sprint em Excel"""
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Ocupação"

        last_col = len(self.calendar.days) + 1
        last_col_letter = get_column_letter(last_col)
        thin = Side(style='thin')

        for col in range(1, last_col + 1):
            ws.column_dimensions[get_column_letter(col)].width = 15

        # Linha 1: Nome da sprint (mesclado até a última data)
        ws.merge_cells(f'A1:{last_col_letter}1')
        ws.cell(row=1, column=1, value=f"Sprint {self.sprint.name or self.sprint.id}")
        ws.cell(row=1, column=1).font = Font(bold=True)
        ws.cell(row=1, column=1).alignment = Alignment(horizontal='center')

        # Linha 2: Datas, Linha 3: Horas, Linha 4: Ocupação
        labels = {2: "Data", 3: "Horas", 4: "Ocupação"}
        for row, label in labels.items():
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)

        for col, day in enumerate(self.calendar.days, start=2):
            date_cell = ws.cell(row=2, column=col, value=day.day)
            date_cell.number_format = 'dd/mm/yyyy'
            date_cell.alignment = Alignment(horizontal='center')

            hours_cell = ws.cell(row=3, column=col, value=day.allocated)
            hours_cell.alignment = Alignment(horizontal='center')
            self._apply_allocation_color(hours_cell, day)

            usage_cell = ws.cell(row=4, column=col, value=day.utilization_percent / 100)
            usage_cell.number_format = '0%'
            usage_cell.alignment = Alignment(horizontal='center')

            for row in range(2, 5):
                ws.cell(row=row, column=col).border = Border(left=thin, right=thin, top=thin, bottom=thin)

        # Legenda
        legend_row = 6
        legend_items = [
            ("Acima da Capacidade", self.excel_colors['over']),
            ("Fim de Semana", self.excel_colors['weekend']),
            ("Dia Completo", self.excel_colors['full']),
            ("Alocação Parcial", self.excel_colors['partial']),
            ("Sem Alocação", self.excel_colors['empty'])
        ]
        ws.cell(row=legend_row, column=1, value="Legenda:").font = Font(bold=True)
        for i, (label, color) in enumerate(legend_items):
            row = legend_row + i + 1
            ws.merge_cells(f'A{row}:C{row}')
            ws.cell(row=row, column=1, value=label)
            ws.cell(row=row, column=4).fill = color

        wb.save(str(excel_path))

    def generate(self) -> Dict[str, Path]:
        """
        Gera o relatório da sprint em Markdown, PDF e Excel

        Returns:
            Dict[str, Path]: Caminho de cada arquivo gerado
        """
        markdown_path = self.output_dir / f"{self.base_name}.md"
        markdown_path.write_text(self._generate_markdown(), encoding='utf-8')
        logger.info(f"Relatório Markdown gerado em {markdown_path}")

        pdf_path = self.output_dir / f"{self.base_name}.pdf"
        self._generate_pdf(pdf_path)
        logger.info(f"Relatório PDF gerado em {pdf_path}")

        excel_path = self.output_dir / f"{self.base_name}.xlsx"
        self._generate_excel(excel_path)
        logger.info(f"Relatório Excel gerado em {excel_path}")

        return {"markdown": markdown_path, "pdf": pdf_path, "excel": excel_path}
